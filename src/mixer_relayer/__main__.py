"""Run the relayer: ``python -m mixer_relayer``."""

import uvicorn

from .adapters.evm.adapter import EVMMixerAdapter
from .config import load_config
from .logs import configure_logging
from .servers.apps import RelayerServer


def create_app(env_file=None) -> RelayerServer:
    config = load_config(env_file)
    configure_logging(config.log_level)
    chain = EVMMixerAdapter(
        private_key=config.private_key,
        rpc_url=config.rpc_url,
        chain_id=config.net_id,
        request_timeout=config.rpc_timeout,
    )
    return RelayerServer(config=config, chain=chain)


def main() -> None:
    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=app.config.app_port, log_level=app.config.log_level.lower())


if __name__ == "__main__":
    main()
