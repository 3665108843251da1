"""Filesystem path templates keyed on the triggering commit.

Output and symlink locations are configured as templates containing a
single placeholder, ``{HEAD_SHA}``, which is replaced with the full
commit hash of the workflow job that produced the artifact:

    /srv/deploy/{HEAD_SHA}  ->  /srv/deploy/3f786850e387550fdab836ed7e6dc881de23001b

Templates are validated twice: once at startup (the raw template must be
an absolute path without ``..`` components) and again after substitution,
so that nothing supplied by a webhook payload can move the resolved path
outside the configured tree.
"""

from pathlib import PurePosixPath, Path

HEAD_SHA_PLACEHOLDER = "{HEAD_SHA}"


class PathTemplateError(Exception):
    """Raised when a path template cannot be resolved to a usable path.

    Attributes:
        template: The offending template string.
    """

    def __init__(self, template: str, message: str):
        self.template = template
        super().__init__(f"Invalid path template {template!r}: {message}")


def _check_path(template: str, value: str) -> None:
    if not value:
        raise PathTemplateError(template, "resolves to an empty path")
    if "\x00" in value:
        raise PathTemplateError(template, "contains a NUL byte")
    if not PurePosixPath(value).is_absolute():
        raise PathTemplateError(template, "must be an absolute path")
    if ".." in PurePosixPath(value).parts:
        raise PathTemplateError(template, "must not contain '..' components")


def validate_path_template(template: str) -> str:
    """Validate a raw template before any substitution happens.

    Args:
        template: The configured template string.

    Returns:
        The template, unchanged.

    Raises:
        PathTemplateError: If the template is empty, relative, or
            contains a path traversal component.
    """
    _check_path(template, template)
    return template


def resolve_path_template(template: str, head_sha: str) -> Path:
    """Substitute the commit hash into a template.

    Every occurrence of ``{HEAD_SHA}`` is replaced. The result is
    re-validated so that the final path is absolute, free of ``..``
    components and free of the literal placeholder.

    Args:
        template: The configured template string.
        head_sha: Full commit hash of the triggering job.

    Returns:
        The resolved filesystem path.

    Raises:
        PathTemplateError: If the resolved string is not a usable path.
    """
    resolved = template.replace(HEAD_SHA_PLACEHOLDER, head_sha)
    _check_path(template, resolved)
    if HEAD_SHA_PLACEHOLDER in resolved:
        raise PathTemplateError(template, "placeholder survived substitution")
    return Path(resolved)
