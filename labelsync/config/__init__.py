"""Settings and logging for labelsync.

Everything else imports configuration from here, never from the submodules:

```python
from labelsync.config import get_logger, settings

logger = get_logger(__name__)
logger.info("Paging label search", page_size=settings.api.spotify_page_size)
```

``get_config("SPOTIFY_PAGE_SIZE", 50)`` gives flat-key access for call sites
that only need one value.
"""

from .logging import (
    get_logger,
    log_startup_info,
    resilient_operation,
    run_context,
    setup_loguru_logger,
)
from .settings import Settings, get_config, settings

__all__ = [
    "Settings",
    "get_config",
    "get_logger",
    "log_startup_info",
    "resilient_operation",
    "run_context",
    "settings",
    "setup_loguru_logger",
]
