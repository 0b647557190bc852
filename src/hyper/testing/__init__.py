"""Test utilities for hyper applications.

::

    from hyper.testing import TestClient

    async with TestClient(app) as client:
        response = await client.post("/login", form={"email": "a@b.co"})
"""

from hyper.testing.client import TestClient, encode_multipart

__all__ = ["TestClient", "encode_multipart"]
