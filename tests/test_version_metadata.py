import importlib
import importlib.metadata


def test_version_matches_package_metadata():
    import agentturn

    assert agentturn.__version__ == importlib.metadata.version("agentturn")


def test_version_fallback_when_metadata_missing(monkeypatch):
    import agentturn

    real_version = importlib.metadata.version

    def _patched_version(name: str) -> str:
        if name == "agentturn":
            raise importlib.metadata.PackageNotFoundError
        return real_version(name)

    monkeypatch.setattr(importlib.metadata, "version", _patched_version)

    reloaded = importlib.reload(agentturn)
    try:
        assert reloaded.__version__ == "0.0.0+local"
    finally:
        monkeypatch.undo()
        importlib.reload(reloaded)
