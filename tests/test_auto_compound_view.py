from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from adapters.entry.http.views.auto_compound_view import get_run_repository, get_use_case_factory
from core.domain.entities.compound_run_entity import CompoundRunEntity
from core.domain.enums.compound_enums import CompoundStep, RunStatus
from core.domain.schemas.onchain_types import Erc20Meta, PoolInfoOut
from core.services.exceptions import (
    ConfigurationError,
    LiquidityConfirmationTimeoutError,
    SwapFailedError,
    TransactionRevertedError,
)
import main
from config import Settings
from main import create_app


def _run(**kw) -> CompoundRunEntity:
    run = CompoundRunEntity(
        pool="TKN-BNB",
        network="bsc",
        dex="pancake",
        wallet="0x" + "12" * 20,
        status=RunStatus.COMPLETED,
        current_step=CompoundStep.STAKE,
        compounded=True,
        lp_minted=42 * 10**30,
        **kw,
    )
    run.record_tx(CompoundStep.HARVEST, "farm.withdraw", "0x01")
    return run


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def use_case():
    return MagicMock()


@pytest.fixture
def factory_calls(app, use_case):
    calls = []

    def factory(**kw):
        calls.append(kw)
        return use_case

    app.dependency_overrides[get_use_case_factory] = lambda: factory
    return calls


@pytest.fixture
def client(app):
    return TestClient(app)


def test_run_returns_result(client, use_case, factory_calls):
    use_case.run.return_value = _run()

    res = client.post("/api/auto-compound/TKN-BNB/run")

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "completed"
    assert body["compounded"] is True
    assert body["lp_minted"] == str(42 * 10**30)
    assert body["steps"][0]["step"] == "harvest"
    assert body["steps"][0]["tx_hash"] == "0x01"
    assert factory_calls == [{"pool_name": "TKN-BNB"}]


def test_run_ignores_config_path_in_body(client, use_case, factory_calls):
    use_case.run.return_value = _run()

    res = client.post("/api/auto-compound/TKN-BNB/run", json={"config_path": "/etc/secrets.json"})

    assert res.status_code == 200
    assert factory_calls == [{"pool_name": "TKN-BNB"}]


def test_configuration_error_is_400(client, app):
    def factory(**kw):
        raise ConfigurationError("Unknown pool: nope")

    app.dependency_overrides[get_use_case_factory] = lambda: factory

    res = client.post("/api/auto-compound/nope/run")

    assert res.status_code == 400
    assert "Unknown pool" in res.json()["detail"]


def test_liquidity_timeout_is_504(client, use_case, factory_calls):
    use_case.run.side_effect = LiquidityConfirmationTimeoutError(tx_hash="0xadd", timeout_sec=20)

    res = client.post("/api/auto-compound/TKN-BNB/run")

    assert res.status_code == 504
    detail = res.json()["detail"]
    assert detail["error"] == "liquidity_confirmation_timeout"
    assert detail["tx"] == "0xadd"
    assert "reconcile manually" in detail["hint"]


def test_revert_is_500_with_receipt(client, use_case, factory_calls):
    use_case.run.side_effect = TransactionRevertedError(
        tx_hash="0xdead",
        description="farm.deposit",
        receipt={"status": 0},
    )

    res = client.post("/api/auto-compound/TKN-BNB/run")

    assert res.status_code == 500
    detail = res.json()["detail"]
    assert detail["error"] == "reverted_on_chain"
    assert detail["tx"] == "0xdead"
    assert detail["step"] == "farm.deposit"
    assert detail["receipt"] == {"status": 0}


def test_other_domain_error_is_500(client, use_case, factory_calls):
    use_case.run.side_effect = SwapFailedError(10, 9, tx_hash="0xswap")

    res = client.post("/api/auto-compound/TKN-BNB/run")

    assert res.status_code == 500
    assert res.json()["detail"]["error"] == "swap_failed"
    assert res.json()["detail"]["tx"] == "0xswap"


def test_list_runs(client, app):
    repo = MagicMock()
    repo.list_recent.return_value = [_run(id="abc")]
    app.dependency_overrides[get_run_repository] = lambda: repo

    res = client.get("/api/auto-compound/TKN-BNB/runs", params={"limit": 5})

    assert res.status_code == 200
    assert res.json()["runs"][0]["id"] == "abc"
    repo.list_recent.assert_called_once_with(pool="TKN-BNB", limit=5)


def test_list_runs_without_history_is_503(client, app):
    app.dependency_overrides[get_run_repository] = lambda: None
    res = client.get("/api/auto-compound/TKN-BNB/runs")
    assert res.status_code == 503


def test_pool_info(client, use_case, factory_calls):
    use_case.pool_info.return_value = PoolInfoOut(
        pair="0x" + "77" * 20,
        lp_symbol="[TKN]-[WBNB]_Cake-LP",
        token_a=Erc20Meta(address="0x" + "33" * 20, symbol="TKN", decimals=18),
        token_b=Erc20Meta(address="0x" + "44" * 20, symbol="WBNB", decimals=18),
        reserve_a=Decimal(1000),
        reserve_b=Decimal(10),
        price_a_in_b=Decimal("0.01"),
    )

    res = client.get("/api/auto-compound/TKN-BNB/pool-info")

    assert res.status_code == 200
    assert res.json()["lp_symbol"] == "[TKN]-[WBNB]_Cake-LP"
    assert factory_calls == [{"pool_name": "TKN-BNB"}]


def test_serve_runs_uvicorn_with_settings():
    settings = Settings(
        PRIVATE_KEY="",
        AUTO_COMPOUND_CONFIG="auto-compound.json",
        ABI_CACHE_DIR="data/abi",
        LOCALHOST_DEPLOYMENTS_DIR="deployments/localhost",
        TX_CONFIRMATIONS=1,
        TX_TIMEOUT_SEC=120,
        LP_MINT_TIMEOUT_SEC=20,
        MONGO_URI="",
        MONGO_DB="auto_compound",
        LOG_LEVEL="DEBUG",
        API_HOST="127.0.0.1",
        API_PORT=9100,
    )

    with patch("main.get_settings", return_value=settings), patch("main.uvicorn.run") as run:
        main.serve()

    run.assert_called_once_with(main.app, host="127.0.0.1", port=9100, log_level="debug")
