import pytest
import asyncio
from datetime import datetime, timezone
from unittest.mock import patch, AsyncMock, MagicMock

from fleet_app_client.client.broadcast import BroadcastStream
from fleet_app_client.errors import RPCError, StatusCode
from fleet_app_client.main import format_log_entry, main_application_runner, print_tree, shutdown, tail_part_logs
from fleet_app_client.models import Location, LogEntry, Organization, Robot, RobotPart


@pytest.fixture
def mock_config():
    """Provides a fake configuration dictionary."""
    return {
        "mqtt": {"host": "localhost", "port": 1883},
        "topic_prefix": "fleet/test",
    }


@pytest.fixture
def fake_app():
    app = MagicMock()
    app.list_organizations = AsyncMock(return_value=[Organization(id="org-1", name="Acme")])
    app.list_locations = AsyncMock(return_value=[Location(id="loc-1", name="Warehouse")])
    app.list_robots = AsyncMock(return_value=[Robot(id="robot-1", name="rover")])
    app.list_robot_parts = AsyncMock(return_value=[RobotPart(id="part-1", name="rover-main", main_part=True)])
    return app


@pytest.mark.asyncio
@patch('fleet_app_client.main.setup_logging')
@patch('fleet_app_client.main.load_config')
@patch('fleet_app_client.main.AppClient')
@patch('fleet_app_client.main.RPCConnection')
async def test_main_wires_config_connection_and_client(
    MockRPCConnection,
    MockAppClient,
    mock_load_config,
    mock_setup_logging,
    mock_config,
    fake_app,
    capsys,
):
    """
    Tests that main_application_runner loads the config, opens the connection
    with it and runs the requested command through an AppClient.
    """
    mock_load_config.return_value = mock_config
    mock_connection = MagicMock()
    MockRPCConnection.return_value.__aenter__.return_value = mock_connection
    MockAppClient.from_connection.return_value = fake_app

    exit_code = await main_application_runner(["tree"])

    assert exit_code == 0
    mock_load_config.assert_called_once_with("config.yaml")
    MockRPCConnection.assert_called_once_with(mock_config)
    MockAppClient.from_connection.assert_called_once_with(mock_connection)
    MockRPCConnection.return_value.__aexit__.assert_awaited_once()
    assert "Acme (org-1)" in capsys.readouterr().out


@pytest.mark.asyncio
@patch('fleet_app_client.main.setup_logging')
@patch('fleet_app_client.main.load_config')
@patch('fleet_app_client.main.RPCConnection')
async def test_main_reports_failed_requests(MockRPCConnection, mock_load_config, mock_setup_logging):
    mock_load_config.return_value = {}
    MockRPCConnection.return_value.__aenter__.side_effect = RPCError(StatusCode.UNAVAILABLE, "no broker")

    exit_code = await main_application_runner(["--config", "other.yaml", "tree"])

    assert exit_code == 1
    mock_load_config.assert_called_once_with("other.yaml")


@pytest.mark.asyncio
async def test_print_tree_walks_the_hierarchy(fake_app, capsys):
    await print_tree(fake_app)

    assert capsys.readouterr().out.splitlines() == [
        "Acme (org-1)",
        "  Warehouse (loc-1)",
        "    rover (robot-1)",
        "      rover-main (part-1) [main]",
    ]
    fake_app.list_locations.assert_awaited_once_with(Organization(id="org-1", name="Acme"))


@pytest.mark.asyncio
async def test_tail_part_logs_prints_batches_oldest_first(server_stream, capsys):
    part = RobotPart(id="part-1", name="rover-main")
    app = MagicMock()
    app.get_robot_part = AsyncMock(return_value=part)
    app.tail_logs = MagicMock(return_value=BroadcastStream(server_stream, on_cancel=server_stream.cancel))

    server_stream.push([LogEntry(level="info", message="second"), LogEntry(level="info", message="first")])
    server_stream.close()

    await tail_part_logs(app, "part-1", errors_only=True)

    lines = capsys.readouterr().out.splitlines()
    assert [line.rsplit(": ", 1)[1] for line in lines] == ["first", "second"]
    app.tail_logs.assert_called_once_with(part, errors_only=True)


@pytest.mark.asyncio
async def test_cancelling_tail_detaches_and_cancels_upstream(server_stream):
    app = MagicMock()
    app.get_robot_part = AsyncMock(return_value=RobotPart(id="part-1"))
    app.tail_logs = MagicMock(return_value=BroadcastStream(server_stream, on_cancel=server_stream.cancel))

    task = asyncio.create_task(tail_part_logs(app, "part-1"))
    await asyncio.sleep(0.05)
    await shutdown("SIGINT", task)

    with pytest.raises(asyncio.CancelledError):
        await task
    assert server_stream.cancel_count == 1


def test_format_log_entry():
    entry = LogEntry(
        time=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        level="warn",
        logger_name="rdk.motor",
        message="stalled",
    )

    assert format_log_entry(entry) == "2024-05-01T12:00:00+00:00 WARN    rdk.motor: stalled"
