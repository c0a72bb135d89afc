"""SDK configuration for larkify.

:class:`LarkifyConfig` captures every client-wide knob exposed by the SDK
and is passed to :class:`AsyncLarkifyClient`.  Per-call options for a
single conversion live in :class:`ConvertOptions`, with diagram rendering
settings grouped under :class:`DiagramOptions`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

DEFAULT_MAX_BLOCKS_PER_REQUEST = 1000
"""Remote ceiling on blocks created by one descendant-creation request."""

DEFAULT_TABLE_MAX_CELLS = 20
"""Largest rows x columns cell count a single table block may carry."""


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass
class DiagramOptions:
    """Settings for rendering ``mermaid`` fences to images.

    Parameters
    ----------
    enabled:
        Render mermaid code fences.  When ``False`` they stay code blocks.
    theme:
        Renderer theme (``default``, ``dark``, ``forest``, ``neutral``).
    background_color:
        Background colour passed to the renderer.
    width, height:
        Optional viewport size in pixels.  When only one is given the other
        defaults to 800 x 600.
    command:
        Renderer executable.  Defaults to the mermaid CLI, ``mmdc``.
    timeout_seconds:
        Upper bound on one render call.
    """

    enabled: bool = True
    theme: str = "default"
    background_color: str = "white"
    width: int | None = None
    height: int | None = None
    command: str = "mmdc"
    timeout_seconds: float = 60.0


@dataclass
class ConvertOptions:
    """Per-call options for one conversion.

    Parameters
    ----------
    title:
        Title of the created document (``convert`` only).
    folder_token:
        Destination folder for the created document.  ``None`` puts it in
        the app's root space.
    image_base_dir:
        Directory that relative image paths are resolved against.  Defaults
        to the current working directory.
    download_remote_images:
        Fetch ``http(s)`` images and upload them.  When ``False`` remote
        images are skipped and their blocks stay empty.
    diagram:
        Diagram rendering settings.
    max_blocks_per_request:
        Override for :attr:`LarkifyConfig.max_blocks_per_request`.
    """

    title: str | None = None
    folder_token: str | None = None
    image_base_dir: str | None = None
    download_remote_images: bool = True
    diagram: DiagramOptions = field(default_factory=DiagramOptions)
    max_blocks_per_request: int | None = None

    def __post_init__(self) -> None:
        if self.max_blocks_per_request is not None and self.max_blocks_per_request < 2:
            raise ValueError(
                f"max_blocks_per_request must be >= 2, got {self.max_blocks_per_request}"
            )


@dataclass
class LarkifyConfig:
    """Complete configuration for a larkify client.

    Either ``app_id`` and ``app_secret`` (tenant token) or
    ``user_access_token`` must be supplied; the client raises
    :class:`LarkifyConfigurationError` otherwise.

    Parameters
    ----------
    app_id:
        Open-platform application id.
    app_secret:
        Open-platform application secret.  Never logged.
    user_access_token:
        A user access token.  When set it is used instead of the tenant
        token and no token exchange happens.  Never logged.
    base_url:
        API root URL.  Use ``https://open.larksuite.com`` for Lark.
    document_url_base:
        Prefix used to build the browser URL of a document.
    retry_max_attempts:
        Maximum attempts per request (including the first one) for
        retryable failures.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Scale backoff intervals randomly by plus/minus 25 %.
    rate_limit_rps:
        Target requests per second for client-side pacing (token bucket).
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    max_blocks_per_request:
        Ceiling on blocks carried by one creation request.  Must be at
        least 2.
    table_max_cells:
        Tables with more cells are chunked on row boundaries.
    image_max_size_bytes:
        Largest image accepted for upload.  Default is 50 MiB.
    image_download_timeout:
        Timeout in seconds for fetching one remote image.
    image_max_concurrent:
        Maximum number of parallel media uploads.
    owner_email, owner_user_id:
        When set, ownership of every created document is transferred to
        this user.  An email is resolved to a user id first.
    collaborator_perm:
        Default permission granted by
        :meth:`AsyncLarkifyClient.add_collaborator` (``view``, ``edit`` or
        ``full_access``).
    metrics:
        A :class:`MetricsHook` implementation.  Defaults to a no-op.
    debug_dump_payload:
        Write the (redacted) request/response of every API call to
        *stderr*.
    """

    # ── Core ────────────────────────────────────────────────────────────
    app_id: str = ""

    app_secret: str = ""

    user_access_token: str | None = None

    base_url: str = "https://open.feishu.cn"

    document_url_base: str = "https://feishu.cn/docx"

    # ── Retry & rate ────────────────────────────────────────────────────
    retry_max_attempts: int = 3

    retry_base_delay: float = 1.0

    retry_max_delay: float = 30.0

    retry_jitter: bool = True

    rate_limit_rps: float = 5.0

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Batching ────────────────────────────────────────────────────────
    max_blocks_per_request: int = DEFAULT_MAX_BLOCKS_PER_REQUEST

    table_max_cells: int = DEFAULT_TABLE_MAX_CELLS

    # ── Images ──────────────────────────────────────────────────────────
    image_max_size_bytes: int = 50 * 1024 * 1024  # 50 MiB

    image_download_timeout: float = 30.0

    image_max_concurrent: int = 4

    # ── Ownership ───────────────────────────────────────────────────────
    owner_email: str | None = None

    owner_user_id: str | None = None

    collaborator_perm: str = "full_access"

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.base_url)
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS to protect your app secret, or target localhost for testing."
            )

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.rate_limit_rps <= 0:
            raise ValueError(f"rate_limit_rps must be > 0, got {self.rate_limit_rps}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_blocks_per_request < 2:
            raise ValueError(
                f"max_blocks_per_request must be >= 2, got {self.max_blocks_per_request}"
            )
        if self.table_max_cells < 1:
            raise ValueError(f"table_max_cells must be >= 1, got {self.table_max_cells}")
        if self.image_max_size_bytes <= 0:
            raise ValueError(f"image_max_size_bytes must be > 0, got {self.image_max_size_bytes}")
        if self.image_download_timeout <= 0:
            raise ValueError(
                f"image_download_timeout must be > 0, got {self.image_download_timeout}"
            )
        if self.image_max_concurrent < 1:
            raise ValueError(f"image_max_concurrent must be >= 1, got {self.image_max_concurrent}")

    @property
    def has_credentials(self) -> bool:
        return bool(self.user_access_token) or bool(self.app_id and self.app_secret)

    def __repr__(self) -> str:
        """Return a repr that masks the secrets."""
        secret_fields = {"app_secret", "user_access_token"}
        parts: list[str] = []
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.name in secret_fields and value:
                parts.append(f"{f.name}='<redacted>'")
            else:
                parts.append(f"{f.name}={value!r}")
        return f"LarkifyConfig({', '.join(parts)})"
