"""Generate responsive image derivatives with Pillow."""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from pressmark.config import Settings
from pressmark.exceptions import DerivativeError
from pressmark.models.content import FileNode, FluidImage
from pressmark.services.cache import Cache, get_cache

logger = logging.getLogger(__name__)

# Widths generated relative to the requested width
FLUID_MULTIPLIERS = (0.25, 0.5, 1, 1.5, 2)

SAVE_FORMATS = {
    "JPEG": ("JPEG", ".jpg"),
    "MPO": ("JPEG", ".jpg"),
    "PNG": ("PNG", ".png"),
    "WEBP": ("WEBP", ".webp"),
    "GIF": ("PNG", ".png"),
    "TIFF": ("JPEG", ".jpg"),
    "BMP": ("PNG", ".png"),
}


@dataclass
class DerivativeFile:
    """One generated derivative on disk."""

    width: int
    height: int
    path: Path


def fluid_widths(width: int, original_width: int) -> list[int]:
    """Return the breakpoint widths for a requested width, never above the original."""
    widths = {round(width * multiplier) for multiplier in FLUID_MULTIPLIERS}
    widths = {w for w in widths if 0 < w <= original_width}
    if original_width < width:
        widths.add(original_width)
    return sorted(widths)


def _file_digest(file: FileNode) -> str:
    if file.digest:
        return file.digest
    return hashlib.sha256(Path(file.path).read_bytes()).hexdigest()


def _build_save_kwargs(save_format: str, quality: int) -> dict:
    if save_format == "JPEG":
        return {"quality": quality, "optimize": True, "progressive": True}
    if save_format == "WEBP":
        return {"quality": quality, "method": 6}
    if save_format == "PNG":
        return {"optimize": True}
    return {}


class DerivativeRenderer:
    """Service producing multi-resolution derivatives for downloaded images."""

    def __init__(self, settings: Settings, cache: Cache | None = None) -> None:
        self.settings = settings
        self.cache = cache or get_cache()
        self.output_dir = Path(settings.derivatives_path)

    async def fluid(self, file: FileNode, width: int, quality: int, path_prefix: str = "") -> FluidImage:
        """
        Generate derivatives of ``file`` around ``width`` and describe them.

        Args:
            file: Downloaded image file
            width: Width the image is displayed at
            quality: Encoder quality for lossy formats
            path_prefix: Prefix for the public URLs of the derivatives

        Returns:
            FluidImage with src, srcset and sizing information

        Raises:
            DerivativeError: The file is missing or isn't a supported image
        """
        if width <= 0:
            raise DerivativeError(f"Invalid derivative width {width} for {file.url}")

        loop = asyncio.get_running_loop()
        try:
            digest = await loop.run_in_executor(None, _file_digest, file)
        except OSError as e:
            raise DerivativeError(f"Cannot read {file.path}: {e}") from e

        cache_key = f"fluid:{digest}:{width}:{quality}:{path_prefix}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        result = await loop.run_in_executor(None, self._generate, file, digest, width, quality, path_prefix)
        await self.cache.set(cache_key, result)
        return result

    def _generate(self, file: FileNode, digest: str, width: int, quality: int, path_prefix: str) -> FluidImage:
        try:
            with Image.open(file.path) as image:
                original_width, original_height = image.size
                save_format, suffix = SAVE_FORMATS.get(image.format or "", ("JPEG", ".jpg"))
                derivatives = [
                    self._write_derivative(image, digest, target, quality, save_format, suffix)
                    for target in fluid_widths(width, original_width)
                ]
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise DerivativeError(f"Cannot generate derivatives for {file.url}: {e}") from e

        presentation_width = min(width, original_width)
        aspect_ratio = original_width / original_height
        presentation_height = round(presentation_width / aspect_ratio)

        src = next(
            (derivative for derivative in derivatives if derivative.width >= presentation_width),
            derivatives[-1],
        )

        return FluidImage(
            src=self._public_url(src.path, path_prefix),
            src_set=", ".join(
                f"{self._public_url(derivative.path, path_prefix)} {derivative.width}w" for derivative in derivatives
            ),
            sizes=f"(max-width: {presentation_width}px) 100vw, {presentation_width}px",
            aspect_ratio=aspect_ratio,
            presentation_width=presentation_width,
            presentation_height=presentation_height,
            original_img=self._public_url(derivatives[-1].path, path_prefix),
        )

    def _write_derivative(
        self,
        image: Image.Image,
        digest: str,
        width: int,
        quality: int,
        save_format: str,
        suffix: str,
    ) -> DerivativeFile:
        original_width, original_height = image.size
        height = max(round(original_height * width / original_width), 1)
        destination = self.output_dir / digest[:16] / f"{width}w-q{quality}{suffix}"

        if destination.exists() and destination.stat().st_size > 0:
            return DerivativeFile(width=width, height=height, path=destination)

        destination.parent.mkdir(parents=True, exist_ok=True)

        if save_format == "JPEG":
            converted = image.convert("RGB")
        elif "A" in image.getbands() or image.mode == "P":
            converted = image.convert("RGBA")
        else:
            converted = image.convert("RGB")

        if (width, height) != converted.size:
            converted = converted.resize((width, height), Image.Resampling.LANCZOS)

        converted.save(destination, format=save_format, **_build_save_kwargs(save_format, quality))
        logger.debug("Generated derivative %s", destination)
        return DerivativeFile(width=width, height=height, path=destination)

    def _public_url(self, path: Path, path_prefix: str) -> str:
        relative = path.relative_to(self.output_dir).as_posix()
        return f"{path_prefix.rstrip('/')}/static/{relative}"


# Global service instance
_derivative_renderer: DerivativeRenderer | None = None


def get_derivative_renderer() -> DerivativeRenderer:
    """Get the global derivative renderer instance."""
    global _derivative_renderer
    if _derivative_renderer is None:
        from pressmark.config import get_settings

        _derivative_renderer = DerivativeRenderer(get_settings())
    return _derivative_renderer


def reset_derivative_renderer() -> None:
    """Reset the global derivative renderer. Useful for testing."""
    global _derivative_renderer
    _derivative_renderer = None
