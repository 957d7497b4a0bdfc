"""
Phase 3 probes — unauthenticated state-changing calls.
"""

from __future__ import annotations

from dexsentry.models.records import Severity
from dexsentry.probes.base import BaseProbe


def _token(collection: str) -> dict:
    return {"collection": collection, "category": "Unit", "type": "none", "additionalKey": "none"}


class PoolCreationProbe(BaseProbe):
    """Create pools with fake tokens, identical pairs and a negative price."""

    name = "Pool Creation Security"
    category = "Access Control"
    description = "Attempts unauthenticated pool creation with invalid parameters"
    fail_severity = Severity.HIGH
    pass_message = "Pool creation rejects unauthenticated and invalid requests"
    fail_message = "Require authentication and token validation for pool creation"

    PATH = "/v1/trade/create-pool"
    PAYLOADS = [
        ("Pool with fake tokens", {
            "token0": _token("FAKE"), "token1": _token("FAKE2"),
            "initialSqrtPrice": "0", "fee": 3000,
        }),
        ("Pool with identical tokens", {
            "token0": _token("GALA"), "token1": _token("GALA"),
            "initialSqrtPrice": "1", "fee": 3000,
        }),
        ("Pool with negative price", {
            "token0": _token("GALA"), "token1": _token("GUSDC"),
            "initialSqrtPrice": "-1", "fee": 3000,
        }),
    ]

    async def probe(self, client):
        cases = []
        for description, payload in self.PAYLOADS:
            resp = await self.post(client, self.PATH, payload)
            cases.append(self.case(description, resp, vulnerable=resp.ok))
            await self.pause()
        return self.finish(cases)


class ChaincodeAccessProbe(BaseProbe):
    """Invoke privileged chaincode functions without credentials."""

    name = "Access Control"
    category = "Chaincode Security"
    description = "Calls admin chaincode functions with missing or forged certificates"
    fail_severity = Severity.CRITICAL
    pass_message = "Access control properly enforced"
    fail_message = "Implement strict certificate-based access control"

    async def probe(self, client):
        attempts = [
            ("Unauthorized Invocation", "POST", "/v1/chaincode/invoke", {
                "chaincodeName": "trading",
                "functionName": "adminFunction",
                "args": ["unauthorized_test"],
            }, {}),
            ("Certificate-based Permissions", "POST", "/v1/chaincode/invoke", {
                "chaincodeName": "trading",
                "functionName": "transfer",
                "args": ["user1", "user2", "1000"],
            }, {"X-Certificate": "INVALID_CERT_DATA"}),
            ("Channel Access Restrictions", "GET", "/v1/channels/private-channel/chaincode",
             None, {"X-Channel-Access": "public-user"}),
        ]
        cases = []
        for description, method, path, body, headers in attempts:
            resp = await self.send(client, method, path, json_body=body, headers=headers)
            cases.append(self.case(description, resp, vulnerable=resp.status_code == 200))
            await self.pause()
        return self.finish(cases)


class AdminEndpointProbe(BaseProbe):
    """Administrative routes should not answer anonymous requests."""

    name = "Admin Endpoint Exposure"
    category = "Access Control"
    description = "Requests well-known admin and internal paths without credentials"
    fail_severity = Severity.HIGH
    pass_message = "Administrative endpoints are not publicly reachable"
    fail_message = "Move administrative routes behind authentication or off the public gateway"

    PATHS = [
        "/v1/admin/pools",
        "/v1/admin/config",
        "/v1/internal/metrics",
        "/admin",
    ]

    async def probe(self, client):
        cases = []
        for path in self.PATHS:
            resp = await self.get(client, path)
            cases.append(self.case(path, resp, vulnerable=resp.ok))
            await self.pause()
        return self.finish(cases)
