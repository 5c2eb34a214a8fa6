from src import config, main


def test_run_serves_app_with_configured_address(monkeypatch):
    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))

    main.run()

    assert calls == [(("src.main:app",), {"host": config.API_HOST, "port": config.API_PORT})]
