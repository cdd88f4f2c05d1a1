"""Tests for configuration loading."""

import pytest

from depthcrawl.utils.config import Config, load_config, parse_redis_addr, validate_config


class TestLoadConfig:

    def test_defaults_without_file(self):
        config = load_config()
        assert config.store == "redis"
        assert config.crawler.max_depth == 3
        assert config.crawler.workers == 10
        assert config.crawler.request_timeout == 10
        assert config.crawler.max_links_per_page == 10
        assert (config.redis.host, config.redis.port) == ("localhost", 6379)

    def test_yaml_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "store: memory\n"
            "crawler:\n"
            "  max_depth: 5\n"
            "  workers: 4\n"
            "redis:\n"
            "  visited_key: my:visited\n"
        )
        config = load_config(str(path))
        assert config.store == "memory"
        assert config.crawler.max_depth == 5
        assert config.crawler.workers == 4
        assert config.crawler.request_timeout == 10
        assert config.redis.visited_key == "my:visited"
        assert config.redis.frontier_key == "crawler:url_frontier"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    @pytest.mark.parametrize("content", [
        "crawler:\n  max_depth: 0\n",
        "crawler:\n  workers: -2\n",
        "crawler:\n  bogus: 1\n",
        "store: cassandra\n",
        "database:\n  type: file\n",
        "crawler: [1, 2]\n",
        "- just a list\n",
    ])
    def test_invalid_files_are_rejected(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content)
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_validate_config_checks_timeout(self):
        config = Config()
        config.crawler.request_timeout = 0
        with pytest.raises(ValueError):
            validate_config(config)


class TestParseRedisAddr:

    def test_host_and_port(self):
        assert parse_redis_addr("redis.internal:6380") == ("redis.internal", 6380)

    def test_default_port(self):
        assert parse_redis_addr("redis.internal") == ("redis.internal", 6379)

    @pytest.mark.parametrize("addr", [":6379", "localhost:abc"])
    def test_invalid(self, addr):
        with pytest.raises(ValueError):
            parse_redis_addr(addr)
