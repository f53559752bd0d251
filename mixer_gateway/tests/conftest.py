import pytest

_GATEWAY_ENV = (
    "DSP_TARGETS_JSON",
    "DSP_METER_MAP_JSON",
    "DSP_METER_PUSH_INTERVAL_MS",
    "DSP_METER_PUSH_THRESHOLD",
    "DSP_METER_TARGETS",
    "DSP_CONTROL_PORT",
    "DSP_PROBE_PORT",
    "ACTIVITY_FILE",
    "UPDATE_LAST_CHECK_FILE",
    "UPDATE_LAST_DEPLOY_FILE",
    "MIXER_RELEASE_ID_FILE",
)


@pytest.fixture(autouse=True)
def isolated_gateway_env(monkeypatch, tmp_path):
    """テスト実行時は実機DSPへの接続やプローブを発生させない。"""
    for name in _GATEWAY_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MIXER_DISABLE_PROBING", "1")
    monkeypatch.setenv("MIXER_UI_DIR", str(tmp_path / "no-ui"))
    yield
