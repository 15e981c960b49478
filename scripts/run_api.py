import uvicorn

from joblock.api.server import create_app
from joblock.config.config import LockConfig
from joblock.utils.logging import configure_logging


def main() -> None:
    config = LockConfig.from_env()
    configure_logging(level=config.log_level, json_output=config.log_json)
    uvicorn.run(
        create_app(config=config),
        host=config.api_host,
        port=config.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
