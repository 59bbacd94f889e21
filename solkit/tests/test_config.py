import pytest

from solkit.config import RPC_URLS, ClientConfig, OverflowPolicy
from solkit.errors import ValidationError


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert config.url == RPC_URLS["mainnet-beta"]
        assert config.overflow is OverflowPolicy.LAG
        assert config.batch_request_limit == 100

    def test_for_cluster(self):
        config = ClientConfig.for_cluster("devnet", timeout=5.0)
        assert config.url == "https://api.devnet.solana.com"
        assert config.websocket_url() == "wss://api.devnet.solana.com"
        assert config.timeout == 5.0

    def test_unknown_cluster(self):
        with pytest.raises(ValidationError, match="unknown cluster"):
            ClientConfig.for_cluster("moonnet")

    @pytest.mark.parametrize(
        "field", ["batch_request_limit", "response_max_size", "subscription_queue_size"]
    )
    def test_rejects_non_positive_limits(self, field):
        with pytest.raises(ValidationError):
            ClientConfig(**{field: 0})

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://rpc.example.com/abc", "wss://rpc.example.com/abc"),
            ("http://localhost:8899", "ws://localhost:8900"),
            ("http://127.0.0.1:8899", "ws://127.0.0.1:8900"),
            ("http://node.internal:9000", "ws://node.internal:9000"),
        ],
    )
    def test_websocket_url_derivation(self, url, expected):
        assert ClientConfig(url=url).websocket_url() == expected

    def test_explicit_websocket_url_wins(self):
        config = ClientConfig(url="https://a.example", ws_url="wss://b.example")
        assert config.websocket_url() == "wss://b.example"


class TestFromEnviron:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for name in (
            "SOLKIT_CLUSTER",
            "SOLKIT_RPC_URL",
            "SOLKIT_WS_URL",
            "SOLKIT_TIMEOUT",
            "SOLKIT_BATCH_LIMIT",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        config = ClientConfig.from_environ()
        assert config.url == RPC_URLS["mainnet-beta"]

    def test_cluster_and_overrides(self, monkeypatch):
        monkeypatch.setenv("SOLKIT_CLUSTER", "testnet")
        monkeypatch.setenv("SOLKIT_TIMEOUT", "2.5")
        monkeypatch.setenv("SOLKIT_BATCH_LIMIT", "10")
        config = ClientConfig.from_environ()
        assert config.url == RPC_URLS["testnet"]
        assert config.ws_url == "wss://api.testnet.solana.com"
        assert config.timeout == 2.5
        assert config.batch_request_limit == 10

    def test_rpc_url(self, monkeypatch):
        monkeypatch.setenv("SOLKIT_RPC_URL", "http://my-node:8899")
        assert ClientConfig.from_environ().url == "http://my-node:8899"

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("SOLKIT_TIMEOUT", "soon")
        with pytest.raises(ValidationError, match="SOLKIT"):
            ClientConfig.from_environ()
