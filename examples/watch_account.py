"""Print the signer's current account and follow account changes.

Run with a ChainX signer open on this machine::

    python examples/watch_account.py
"""

from __future__ import annotations

import asyncio
import logging

from chainx_signer import SignerClient, SignerError, load_signer_config


async def main() -> None:
    config = load_signer_config(overrides={"plugin": "account-watcher"})
    async with SignerClient.from_config(config) as signer:
        try:
            account = await signer.get_current_account()
        except SignerError as exc:
            print(f"signer refused: {exc.to_dict()}")
            return
        print(f"current account: {account}")

        signer.listen_account_change(lambda payload: print(f"account changed: {payload}"))
        signer.listen_network_change(lambda payload: print(f"network changed: {payload}"))
        await asyncio.Event().wait()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
