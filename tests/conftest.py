"""Configure pytest fixtures and environment for guidelint tests."""

from pathlib import Path
from typing import Callable, Dict

import pytest
from dotenv import load_dotenv

from guidelint.core.config import Settings, reset_settings

CHAPTER_TEMPLATE = """# {title}

Some text about {title}.

```python
print("{title}")
```

{footer}
"""


def pytest_sessionstart(session):
    """Load environment variables for the test session."""
    load_dotenv()


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def write_files(tmp_path) -> Callable[[Dict[str, str]], Path]:
    """Write a mapping of relative path to content under ``tmp_path``."""

    def _write(files: Dict[str, str]) -> Path:
        for relative, content in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write


def chapter(title: str, previous: str = None, next_: str = None, index: str = "README.md") -> str:
    """Chapter text with a standard navigation footer."""
    parts = []
    if previous:
        parts.append(f"[← Previous]({previous})")
    if index:
        parts.append(f"[Back to Index]({index})")
    if next_:
        parts.append(f"[Next →]({next_})")
    return CHAPTER_TEMPLATE.format(title=title, footer=" | ".join(parts))


@pytest.fixture
def make_chapter() -> Callable[..., str]:
    return chapter


@pytest.fixture
def valid_guide(write_files) -> Path:
    """A three chapter guide whose index, footers and fences are all correct."""
    return write_files(
        {
            "README.md": (
                "# Python Guide\n\n"
                "1. [Introduction](01-introduction.md)\n"
                "2. [Setup](02-setup.md)\n"
                "3. [First Program](03-first-program.md)\n"
            ),
            "01-introduction.md": chapter("Introduction", next_="02-setup.md"),
            "02-setup.md": chapter(
                "Setup", previous="01-introduction.md", next_="03-first-program.md"
            ),
            "03-first-program.md": chapter("First Program", previous="02-setup.md"),
        }
    )


@pytest.fixture
def settings_for() -> Callable[..., Settings]:
    """Settings rooted at a test directory, ignoring any local .env file."""

    def _settings(root: Path, **overrides) -> Settings:
        return Settings(_env_file=None, root=root, **overrides)

    return _settings
