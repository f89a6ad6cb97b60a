"""Tests for package-level functionality."""


def test_package_imports() -> None:
    """Verify the package imports correctly."""
    from smlr import __version__

    assert __version__
    assert isinstance(__version__, str)


def test_version_format() -> None:
    """Verify the version follows expected format."""
    from smlr import __version__

    # Version should be either a proper semver or dev version
    parts = __version__.split(".")
    assert len(parts) >= 2, f"Version should have at least major.minor: {__version__}"


def test_public_api() -> None:
    """Verify the core API is re-exported from the package root."""
    import smlr

    for name in smlr.__all__:
        assert hasattr(smlr, name), name
