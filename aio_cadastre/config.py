"""Settings read from environment variables."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from aio_cadastre.loader import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SRS_NAME,
    DEFAULT_TYPE_NAME,
    DEFAULT_URL,
    FeatureLoader,
    RequestTimeout,
)


__docformat__ = "google"
__all__ = (
    "ENV_PREFIX",
    "Settings",
)


ENV_PREFIX = "CADASTRE_"


@dataclass(kw_only=True, slots=True, frozen=True)
class Settings:
    """
    Settings for the loader and the proxy.

    Attributes:
        source_url: WFS endpoint the loader requests parcels from
        type_name: name of the parcel layer
        srs_name: spatial reference system to request, or ``None``
        page_size: number of features per page when loading in pages
        timeout_secs: timeout of a single request
        host: interface the proxy binds to
        port: port the proxy listens on
        upstream_url: feature server the proxy forwards to
        static_dir: directory with the static assets of the viewer
        proxy_prefix: path prefix of requests forwarded to ``upstream_url``
    """

    source_url: str = DEFAULT_URL
    type_name: str = DEFAULT_TYPE_NAME
    srs_name: str | None = DEFAULT_SRS_NAME
    page_size: int = DEFAULT_PAGE_SIZE
    timeout_secs: float = 60.0
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    upstream_url: str = "http://localhost:8080"
    static_dir: Path = field(default_factory=Path.cwd)
    proxy_prefix: str = "/geoserver"

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            msg = "'page_size' must be > 0"
            raise ValueError(msg)

        if self.timeout_secs <= 0.0:
            msg = "'timeout_secs' must be > 0"
            raise ValueError(msg)

        if not 0 < self.port < 65536:
            msg = "'port' must be in 1..65535"
            raise ValueError(msg)

        if not self.proxy_prefix.startswith("/") or self.proxy_prefix.endswith("/"):
            msg = "'proxy_prefix' must start, but not end with '/'"
            raise ValueError(msg)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Read settings from ``CADASTRE_*`` variables, using defaults for missing ones.

        Raises:
            ValueError: if a variable has an invalid value
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        kwargs: dict = {}

        for name, key, convert in (
            ("SOURCE_URL", "source_url", str),
            ("TYPE_NAME", "type_name", str),
            ("PAGE_SIZE", "page_size", int),
            ("TIMEOUT_SECS", "timeout_secs", float),
            ("HOST", "host", str),
            ("PORT", "port", int),
            ("UPSTREAM_URL", "upstream_url", str),
            ("STATIC_DIR", "static_dir", Path),
            ("PROXY_PREFIX", "proxy_prefix", str),
        ):
            if (value := get(name)) is not None:
                try:
                    kwargs[key] = convert(value)
                except ValueError as err:
                    msg = f"invalid value for {ENV_PREFIX}{name}: {value!r}"
                    raise ValueError(msg) from err

        # an empty value disables the srsName parameter
        srs_key = ENV_PREFIX + "SRS_NAME"
        if srs_key in env:
            kwargs["srs_name"] = env[srs_key] or None

        return cls(**kwargs)

    def loader(self, **kwargs) -> FeatureLoader:
        """A loader configured with these settings; ``kwargs`` are passed to it as well."""
        return FeatureLoader(
            url=self.source_url,
            type_name=self.type_name,
            srs_name=self.srs_name,
            page_size=self.page_size,
            timeout=RequestTimeout(total_secs=self.timeout_secs),
            **kwargs,
        )
