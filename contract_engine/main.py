from contract_engine.api.main import app

if __name__ == "__main__":
    import uvicorn

    from contract_engine.core.config import load_settings

    settings = load_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
