"""Tests for image width resolution."""

from pressmark.services.widths import html_inferred_width, largest_size_from_sizes, resolve_image_width


class TestLargestSizeFromSizes:
    """Tests for parsing sizes attributes."""

    def test_wordpress_default_sizes(self):
        """Test the sizes attribute WordPress writes by default."""
        assert largest_size_from_sizes("(max-width: 300px) 100vw, 300px") == 300

    def test_picks_largest_bound(self):
        """Test that the biggest bound across entries wins."""
        assert largest_size_from_sizes("(max-width: 600px) 100vw, (max-width: 1200px) 50vw, 800px") == 1200

    def test_smaller_slot_width_caps_condition(self):
        """Test that a px slot smaller than its condition is used."""
        assert largest_size_from_sizes("(max-width: 600px) 300px") == 300

    def test_no_px_bounds(self):
        """Test that relative-only sizes give nothing."""
        assert largest_size_from_sizes("100vw") is None
        assert largest_size_from_sizes("") is None


class TestHtmlInferredWidth:
    """Tests for html_inferred_width."""

    def test_width_attribute_wins(self):
        """Test that the width attribute takes priority over sizes."""
        assert html_inferred_width("640", "(max-width: 300px) 100vw, 300px") == 640

    def test_falls_back_to_sizes(self):
        """Test that sizes is used without a width attribute."""
        assert html_inferred_width(None, "(max-width: 300px) 100vw, 300px") == 300

    def test_unparseable_width(self):
        """Test that a non-numeric width is ignored."""
        assert html_inferred_width("auto", None) is None
        assert html_inferred_width("100%", "500px") == 500


class TestResolveImageWidth:
    """Tests for the width cascade."""

    def test_explicit_width_capped_by_natural_width(self):
        """Test that the original upload size bounds the requested width."""
        assert resolve_image_width(explicit_width="800", asset_width=500, fallback_width=1024) == 500

    def test_explicit_width_below_natural_width(self):
        """Test that a smaller requested width is kept."""
        assert resolve_image_width(explicit_width="400", asset_width=2000, fallback_width=1024) == 400

    def test_sizes_without_width(self):
        """Test that the sizes bound is used when no width is given."""
        assert (
            resolve_image_width(sizes="(max-width: 300px) 100vw, 300px", asset_width=2000, fallback_width=1024)
            == 300
        )

    def test_fallback(self):
        """Test that the fallback is used without any html signal."""
        assert resolve_image_width(asset_width=2000, fallback_width=1024) == 1024

    def test_fallback_capped_by_natural_width(self):
        """Test that the fallback never upscales."""
        assert resolve_image_width(asset_width=600, fallback_width=1024) == 600

    def test_unknown_natural_width(self):
        """Test files without media details."""
        assert resolve_image_width(explicit_width="350", fallback_width=1024) == 350
        assert resolve_image_width(fallback_width=1024) == 1024

    def test_nothing_known(self):
        """Test that no signal and no fallback gives None."""
        assert resolve_image_width() is None
