import os
from typing import Final


__docformat__ = "google"
__all__ = (
    "IS_CI",
    "IS_UNIT_TEST",
)

IS_CI: Final[bool] = "GITHUB_ACTIONS" in os.environ
IS_UNIT_TEST: Final[bool] = "PYTEST_VERSION" in os.environ
