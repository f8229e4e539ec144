"""
Services module for storage, matching and the client side of the relay protocol.

Key components:
- directory_store: JSON-file stores for the organization directory and the
  collected records, with atomic writes.
- matcher: Normalization and exact matching of spoken location/organization
  names against directory entries.
- websocket_client: RelayClient for connecting to the relay's `/ws` endpoint.

Usage examples:
```python
from voice_intake.services.websocket_client import RelayClient
import asyncio

async def call_relay():
    client = RelayClient("ws://localhost:8000/ws")

    if await client.connect():
        await client.start()
        await client.send_text("My son is sick.")
        await client.stop()

    await client.close()

asyncio.run(call_relay())
```
"""
