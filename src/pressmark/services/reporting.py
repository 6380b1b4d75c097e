"""Log message helpers for problems editors need to fix in WordPress."""

from urllib.parse import urlsplit

from pressmark.models.content import ContentNode

LOG_PREFIX = "[pressmark]"


def format_log_message(message: str) -> str:
    """Prefix a user-facing log message."""
    return f"{LOG_PREFIX} {message}"


def get_node_edit_link(node: ContentNode, base_url: str = "") -> str | None:
    """
    Build the wp-admin edit URL for a record.

    The host comes from the record's own link, falling back to ``base_url``.
    Returns None when neither gives a host or the record has no database id.
    """
    if node.database_id is None:
        return None

    parts = urlsplit(node.link or "")
    if not parts.scheme or not parts.hostname:
        parts = urlsplit(base_url)
    if not parts.scheme or not parts.hostname:
        return None

    return f"{parts.scheme}://{parts.hostname}/wp-admin/post.php?post={node.database_id}&action=edit"


def missing_image_message(node: ContentNode, image_url: str, base_url: str = "") -> str:
    """Explain a 404 for an inline image and where to fix it."""
    edit_link = get_node_edit_link(node, base_url) or "the WordPress admin"
    return format_log_message(
        f"Received a 404 when trying to fetch\n{image_url}\n"
        f'from {node.typename} #{node.database_id} "{node.display_title}"\n\n'
        f"Most likely this image was uploaded to this {node.typename} and then deleted from the media library.\n"
        f"You'll need to fix this and re-save this {node.typename} to remove this warning at\n{edit_link}."
    )
