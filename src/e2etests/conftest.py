"""
Shared fixtures for end-to-end tests. These run the real worker strategies
against a collector served from a local HTTP server.
"""

import shutil
import tempfile

import pytest

from skylight.config import Config


@pytest.fixture
def sockfile_dir():
    # Unix socket paths are limited to ~100 bytes, so stay out of deep tmp_path trees
    path = tempfile.mkdtemp(prefix="skylight-")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def make_config(sockfile_dir):
    def make(port: int, strategy: str = "embedded", **agent):
        return Config.build(
            authentication="lulz",
            log="-",
            log_level="debug",
            agent={
                "strategy": strategy,
                "interval": 1,
                "sockfile_path": sockfile_dir,
                **agent,
            },
            report={
                "host": "127.0.0.1",
                "port": port,
                "ssl": False,
                "deflate": False,
                "timeout": 5,
                "retries": 0,
            },
        )

    return make
