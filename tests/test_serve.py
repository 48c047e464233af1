from unittest.mock import patch

from frontdesk import serve
from frontdesk.core.config import settings


class TestServe:

    def test_runs_app_under_uvicorn(self):
        with patch.object(serve.uvicorn, "run") as run:
            serve.main()
        run.assert_called_once_with(
            "frontdesk.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=settings.ENV == "local",
            log_config=None,
        )
