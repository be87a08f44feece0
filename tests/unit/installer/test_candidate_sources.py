"""Unit tests for the candidate source chain and local archive checks."""

from haystack_client.installer.platform_resolver import PlatformResolver
from haystack_client.installer.sources import (
    MIN_ARCHIVE_SIZE,
    CandidateSource,
    CandidateSourceChain,
    SourceKind,
    check_local_archive,
)


def _linux_target():
    return PlatformResolver("Linux", "x86_64").resolve()


class TestCandidateSourceChain:
    """Test ordering and locations of candidate sources."""

    def test_chain_order(self, config):
        chain = CandidateSourceChain.for_target(config, _linux_target())

        assert [source.kind for source in chain] == [
            SourceKind.CACHED_DOWNLOAD,
            SourceKind.BUNDLED,
            SourceKind.REMOTE_PRIMARY,
            SourceKind.REMOTE_FALLBACK,
        ]
        assert len(chain) == 4

    def test_locations_follow_naming_convention(self, config):
        sources = CandidateSourceChain.for_target(config, _linux_target()).sources
        archive_name = "haystack-linux-amd64-1.2.3.zip"

        cached, bundled, primary, fallback = sources
        assert cached.locate() == config.storage.download_cache_dir / archive_name
        assert bundled.locate() == config.storage.bundled_dir / archive_name
        assert primary.locate() == (
            f"https://primary.example.com/releases/1.2.3/{archive_name}"
        )
        assert fallback.locate() == (
            f"https://fallback.example.com/releases/1.2.3/{archive_name}"
        )

    def test_remote_sources_download_into_cache(self, config):
        sources = CandidateSourceChain.for_target(config, _linux_target()).sources

        for source in sources:
            if source.kind.is_remote:
                assert source.cache_path == sources[0].locate()
            else:
                assert source.cache_path is None


class TestCheckLocalArchive:
    """Test size checks on cached and bundled archives."""

    def test_missing_archive(self, tmp_path):
        source = CandidateSource(SourceKind.CACHED_DOWNLOAD, str(tmp_path / "a.zip"))

        assert check_local_archive(source) is None

    def test_full_size_archive_is_used(self, tmp_path):
        path = tmp_path / "a.zip"
        path.write_bytes(b"\0" * MIN_ARCHIVE_SIZE)
        source = CandidateSource(SourceKind.BUNDLED, str(path))

        assert check_local_archive(source) == path

    def test_undersized_cached_archive_is_deleted(self, tmp_path):
        path = tmp_path / "a.zip"
        path.write_bytes(b"\0" * 100)
        source = CandidateSource(SourceKind.CACHED_DOWNLOAD, str(path))

        assert check_local_archive(source) is None
        assert not path.exists()

    def test_undersized_bundled_archive_is_kept(self, tmp_path):
        path = tmp_path / "a.zip"
        path.write_bytes(b"\0" * 100)
        source = CandidateSource(SourceKind.BUNDLED, str(path))

        assert check_local_archive(source) is None
        assert path.exists()
