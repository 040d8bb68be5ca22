import os
from pathlib import Path
from typing import Optional


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Resolve 'sqlite:///./relative/path' to an absolute sqlite:/// URL.

    Keeps other URL forms unchanged.
    """
    prefix = "sqlite:///./"
    if not url.startswith(prefix):
        return url
    rel = url[len(prefix) :]
    return f"sqlite:///{(project_root / rel).resolve()}"


def namespaced_key(key: str, namespace: Optional[str] = None) -> str:
    """Prefix a stored record key with the configured namespace.

    The namespace defaults to the ``LUCKYDRAW_NAMESPACE`` environment variable.
    An empty or missing namespace leaves ``key`` untouched.
    """
    if namespace is None:
        namespace = os.getenv("LUCKYDRAW_NAMESPACE", "")
    namespace = namespace.strip()
    if not namespace:
        return key
    return f"{namespace}:{key}"
