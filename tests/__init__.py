"""
Test package for ubus-ws.

This package contains:
- test_client.py: Connection, login and close tests
- test_dispatch.py: Call submission, concurrency cap and reply correlation tests
- test_envelope.py: Wire envelope tests
- test_status.py: Status code table tests
- test_errors.py: Error type tests
- test_config.py: Configuration tests
- test_cli.py: Command-line tool tests
- mock_daemon.py: In-memory stand-in for the daemon's WebSocket
- conftest.py: Pytest configuration and fixtures
"""
