"""
Static remediation guide, keyed by probe name.

Each entry: description, impact, how_test_was_run {method, details,
code, expected, actual}, remediation {immediate, implementation,
testing}.  Served as-is by ``/api/issue/{name}`` and rendered into the
Markdown and HTML reports.
"""

from typing import Optional


def _entry(description, impact, method, details, code, expected, actual,
           immediate, implementation, testing) -> dict:
    return {
        "description": description,
        "impact": impact,
        "howTestWasRun": {
            "method": method,
            "details": details,
            "code": code,
            "expectedBehavior": expected,
            "actualBehavior": actual,
        },
        "remediation": {
            "immediate": immediate,
            "implementation": implementation,
            "testing": testing,
        },
    }


_RATE_LIMIT = _entry(
    "API endpoints accept unlimited requests without throttling",
    "Allows DDoS attacks, resource exhaustion, and potential system overload",
    "Burst Testing",
    "Sent a bounded-concurrency burst of GET /v1/trade/price requests and counted HTTP 429 responses",
    'await burst(50, lambda i: client.get("/v1/trade/price", params={"token": "GALA$Unit$none$none"}), 25)',
    "Should receive 429 (Too Many Requests) after the per-client threshold",
    "All requests succeeded without throttling",
    [
        "Put a rate limiter in front of every public /v1/trade route",
        "Start with 20 requests per minute per client for public endpoints",
        "Return 429 with a Retry-After header",
    ],
    "limiter = rateLimit({ windowMs: 60_000, max: 20, standardHeaders: true })\n"
    "app.use('/v1/trade', limiter)",
    [
        "Verify limits apply per client IP or API key",
        "Check legitimate traffic is not blocked",
        "Confirm 429 responses carry Retry-After",
    ],
)

REMEDIATION_GUIDE: dict[str, dict] = {
    "Rate Limiting": _RATE_LIMIT,
    "Rate Limit Detection": _RATE_LIMIT,

    "Liquidity Drain": _entry(
        "Large trades move the quoted price far beyond what pool depth should allow",
        "Whales or attackers can drain shallow pools and leave other traders with extreme slippage",
        "Trade Size Escalation",
        "Quoted GALA to GUSDC at 1k, 10k, 100k, 1M and 10M and compared the effective rate between sizes",
        'for amount in ["1000", "10000", "100000"]: await client.get("/v1/trade/quote", params=...)',
        "Price impact between consecutive sizes stays under 10%",
        "Price impact exceeded 10% between trade sizes",
        [
            "Cap single-trade size relative to pool reserves",
            "Surface the price impact to clients before execution",
            "Require minAmountOut on every swap",
        ],
        "if (amountIn > reserveIn * MAX_TRADE_FRACTION) throw new Error('Trade too large for pool')",
        [
            "Quote the largest allowed trade and check the impact",
            "Confirm oversized trades are rejected with 400",
        ],
    ),

    "Precision/Rounding": _entry(
        "Mathematical operations may have precision errors affecting trades",
        "Can lead to fund loss, arbitrage opportunities, or unfair trades",
        "Precision Testing",
        "Quoted dust and repeating-decimal amounts GALA to GUSDC and back, comparing the round trip",
        'await client.get("/v1/trade/quote", params={"amountIn": "0.000000000000000001", ...})',
        "Should handle decimal precision correctly or reject dust amounts",
        "Round trips lost more value than the pool fees explain",
        [
            "Use a decimal library for every amount calculation",
            "Define minimum trade amounts",
            "Apply one consistent rounding rule",
        ],
        "const out = new Decimal(amountIn).mul(1 - fee).mul(reserveOut).div(reserveIn.plus(amountIn)).toFixed(8)",
        [
            "Test with extreme values",
            "Verify rounding is consistent",
            "Check that dust amounts are properly handled",
        ],
    ),

    "Input Validation": _entry(
        "Endpoints accept invalid or malicious input without proper validation",
        "Can lead to system errors, injection attacks, or unexpected behavior",
        "Boundary Testing",
        "Sent zero, negative, overflow, NaN, hex, path traversal and SQL injection values as amountIn",
        'await client.get("/v1/trade/quote", params={"amountIn": "1; DROP TABLE pools;", ...})',
        "Should reject with 400 Bad Request and clear error message",
        "Some invalid inputs are processed or cause server errors",
        [
            "Add input validation middleware",
            "Sanitize all user inputs",
            "Use parameterized queries for database operations",
        ],
        "const n = Number(amount)\n"
        "if (!Number.isFinite(n) || n <= 0 || n > MAX_AMOUNT) return res.status(400).json({ error: 'Invalid amount' })",
        [
            "Test all boundary conditions",
            "Verify error messages are informative but not revealing",
            "Ensure validation is consistent across all endpoints",
        ],
    ),

    "Token Validation": _entry(
        "Price and quote endpoints answer for token keys that are not registered",
        "Fake or malformed tokens can be priced, listed or traded against",
        "Token Key Fuzzing",
        "Requested prices for non-existent, oversized and injection-laden token keys",
        'await client.get("/v1/trade/price", params={"token": "FAKE$Unit$none$none"})',
        "Unknown token keys are rejected with 400 or 404",
        "Some unknown token keys returned a price or an unexpected status",
        [
            "Validate token keys against the registered token list",
            "Reject keys that do not match the four-part class key format",
        ],
        "if (!TOKEN_KEY_RE.test(token) || !registry.has(token)) return res.status(404).end()",
        ["Query a fake token and confirm 404", "Query an oversized key and confirm 400"],
    ),

    "Pool with fake tokens": _entry(
        "System allows creation or interaction with pools containing non-existent tokens",
        "Could enable market manipulation or user fund loss",
        "Token Validation Testing",
        "Attempted to create a pool whose tokens are not registered",
        'await client.post("/v1/trade/create-pool", json={"token0": {"collection": "FAKE", ...}, ...})',
        "Should reject operations with non-existent tokens",
        "May accept fake tokens in some operations",
        ["Validate both pool tokens exist before creating a pool"],
        "if (!(await tokenExists(token0)) || !(await tokenExists(token1))) throw new Error('Unknown token')",
        ["Create a pool with a fake token and confirm rejection"],
    ),

    "Error Information Leakage": _entry(
        "Error responses reveal file paths, stack traces or database details",
        "Attackers learn the stack, file layout and query structure of the backend",
        "Error Triggering",
        "Triggered 4xx and 5xx responses and scanned their bodies for paths, stack frames and SQL terms",
        'await client.get("/v1/trade/quote", params={"tokenIn": "SELECT * FROM pools"})',
        "Errors carry a generic message and an opaque correlation id",
        "Error bodies contained internal details",
        [
            "Return generic error messages to clients",
            "Log full errors server-side with a correlation id",
        ],
        "app.use((err, req, res, next) => { log.error(err); res.status(500).json({ error: 'Internal error', id: req.id }) })",
        ["Trigger each error path and confirm no internals are returned"],
    ),

    "Quote Consistency": _entry(
        "Identical quote requests sent at the same moment return different amounts",
        "Racy state reads let attackers pick favourable quotes or front-run their own trades",
        "Parallel Quote Comparison",
        "Sent identical GALA to GUSDC quote requests concurrently and compared amountOut",
        'await burst(10, lambda i: client.get("/v1/trade/quote", params=...), 10)',
        "Every parallel quote returns the same amountOut",
        "Parallel quotes disagreed",
        ["Read pool state from one consistent snapshot per quote"],
        "const snapshot = await pool.snapshot(); return quoteFrom(snapshot, amountIn)",
        ["Repeat the parallel burst and confirm identical quotes"],
    ),

    "Pool Creation Security": _entry(
        "Pool creation endpoint may lack proper authorization checks",
        "Unauthorized users could create malicious pools to manipulate markets",
        "Authorization Testing",
        "Attempted unauthenticated pool creation with fake tokens, identical tokens and a negative price",
        'await client.post("/v1/trade/create-pool", json=payload)  # no auth headers',
        "Should require authentication and authorization",
        "Unauthenticated pool creation requests were accepted",
        [
            "Implement authentication middleware",
            "Require an admin role for pool creation",
            "Validate token pair and initial price",
        ],
        "app.post('/v1/trade/create-pool', requireAuth, requireAdmin, validatePool, createPool)",
        [
            "Verify unauthenticated requests are rejected",
            "Test role-based access control",
        ],
    ),

    "Access Control": _entry(
        "Chaincode functions lack proper access control mechanisms",
        "Unauthorized users could invoke restricted functions or access sensitive data",
        "Permission Testing",
        "Invoked admin chaincode functions with no certificate, a forged certificate and a public channel identity",
        'await client.post("/v1/chaincode/invoke", json={"functionName": "adminFunction", ...})',
        "Should reject with 401/403 and proper error message",
        "Function executed without authorization check",
        [
            "Check the caller identity inside every privileged chaincode function",
            "Enforce MSP-based roles on admin functions",
            "Restrict private channel queries to channel members",
        ],
        "const mspId = ctx.clientIdentity.getMSPID()\n"
        "if (!ADMIN_MSPS.includes(mspId)) throw new Error('Access denied')",
        [
            "Invoke each admin function as an ordinary identity",
            "Verify forged certificates are rejected",
        ],
    ),

    "Admin Endpoint Exposure": _entry(
        "Administrative or internal routes answer anonymous requests",
        "Pool configuration, metrics or admin operations are exposed to anyone on the internet",
        "Path Discovery",
        "Requested well-known admin and internal paths without credentials",
        'await client.get("/v1/admin/config")',
        "Admin paths return 401, 403 or 404",
        "One or more admin paths returned 2xx",
        ["Move admin routes behind authentication or off the public gateway"],
        "app.use('/v1/admin', requireAuth, requireAdmin)",
        ["Request every admin path anonymously and confirm rejection"],
    ),

    "Timestamp Manipulation": _entry(
        "System accepts transactions with invalid or manipulated timestamps",
        "Could allow backdated transactions, deadline bypass, or timing attacks",
        "Timestamp Validation Testing",
        "Submitted swaps stamped a day ahead, a week back, at zero, negative and at the integer limit",
        'await client.post("/v1/trade/swap", json={"timestamp": now + DAY_MS, ...})',
        "Should reject transactions with invalid timestamps",
        "Transactions with invalid timestamps were accepted",
        [
            "Reject timestamps outside a small window around server time",
            "Use server time for anything that matters",
        ],
        "if (Math.abs(Date.now() - tx.timestamp) > MAX_SKEW_MS) throw new Error('Invalid timestamp')",
        ["Submit future and past timestamps and confirm rejection"],
    ),

    "Deadline Bypass": _entry(
        "Transactions can execute after their specified deadline",
        "Could allow execution of expired orders or time-sensitive operations",
        "Deadline Enforcement Testing",
        "Submitted swaps with expired, immediate, missing, zero and far-future deadlines",
        'await client.post("/v1/trade/swap", json={"deadline": now - HOUR_MS, ...})',
        "Should reject transactions past their deadline",
        "Expired transactions were processed successfully",
        ["Reject swaps whose deadline is missing, zero or already past"],
        "if (!tx.deadline || tx.deadline <= Date.now()) throw new Error('Transaction deadline exceeded')",
        ["Submit an expired swap and confirm rejection"],
    ),

    "Replay Attack Protection": _entry(
        "Transactions may be replayed without proper nonce management",
        "Allows attackers to repeat transactions, double-spending",
        "Replay Testing",
        "Submitted the same nonce-bearing swap twice",
        "first = await client.post('/v1/trade/swap', json=payload)\n"
        "second = await client.post('/v1/trade/swap', json=payload)",
        "Second submission should be rejected",
        "Transaction may be accepted multiple times",
        ["Track used nonces per wallet and reject duplicates"],
        "if (await nonces.has(wallet, tx.nonce)) throw new Error('Replay detected')\n"
        "await nonces.add(wallet, tx.nonce)",
        ["Replay a signed request and confirm the second is rejected"],
    ),

    "Bridge Configuration Enumeration": _entry(
        "Bridge configurations are publicly accessible without authentication",
        "Information disclosure that could aid attackers in planning targeted attacks",
        "Configuration Discovery",
        "Listed bridge configurations without authentication",
        'await client.get("/v1/connect/bridge-configurations")',
        "Should require authentication or limit exposed information",
        "All bridge configurations publicly accessible",
        [
            "Review what bridge information must be public",
            "Strip internal fields from the public listing",
        ],
        "res.json(configs.map(({ symbol, chains }) => ({ symbol, chains })))",
        ["Compare the public listing against the fields clients actually need"],
    ),

    "Bridge Input Validation": _entry(
        "Bridge endpoints may not properly validate input parameters",
        "Could allow invalid bridge operations or cause system errors",
        "Input Fuzzing",
        "Submitted bridge requests with invalid chain ids, the zero address, negative and uint256-max amounts",
        'await client.post("/v1/connect/bridge/request", json={"destinationChainId": -1, ...})',
        "Should reject all invalid inputs with proper error messages",
        "Some inputs were accepted or caused server errors",
        [
            "Validate chain id against supported chains",
            "Reject the zero address as recipient",
            "Bound quantities to positive, representable values",
        ],
        "if (!SUPPORTED_CHAINS.has(chainId) || recipient === ZERO_ADDRESS || !(qty > 0)) return res.status(400).end()",
        ["Replay each malformed request and confirm a 400"],
    ),

    "Bridge Status Disclosure": _entry(
        "Bridge status endpoint may expose sensitive operational information",
        "Could reveal system vulnerabilities or aid in timing attacks",
        "Information Gathering",
        "Queried bridge status for zero, random, malformed and path traversal hashes",
        'await client.post("/v1/connect/bridge/status", json={"hash": "0x" + "0" * 64})',
        "Should only expose necessary status information",
        "Returned data for hashes that cannot exist",
        ["Validate hash format and return 404 for unknown transactions"],
        "if (!/^0x[0-9a-f]{64}$/i.test(hash)) return res.status(400).end()",
        ["Query an unknown hash and confirm 404 with no body"],
    ),

    "Response Time Baseline": _entry(
        "Public trade endpoints answer slowly even without load",
        "Slow quotes go stale before execution and make the API easy to overload",
        "Sequential Sampling",
        "Sampled the price, quote and pool endpoints sequentially and averaged response times",
        'for _ in range(5): await client.get("/v1/trade/price", params=...)',
        "Average response time under one second",
        "One or more endpoints averaged over one second",
        ["Cache price and pool reads", "Profile the slow endpoints"],
        "const price = await cache.wrap(`price:${token}`, () => loadPrice(token), { ttl: 2 })",
        ["Re-sample after changes and compare averages"],
    ),

    "Concurrent Load Handling": _entry(
        "Requests fail outright under moderate concurrent load",
        "Legitimate users see errors whenever traffic spikes",
        "Concurrent Burst",
        "Sent bursts of 10, 25 and 50 concurrent price requests and counted non-2xx, non-429 responses",
        'await timed_burst(50, send, 25)',
        "No requests dropped; 429 is acceptable",
        "Requests failed under concurrent load",
        ["Scale the backend horizontally", "Shed load with 429 instead of failing"],
        "server.maxConnections = MAX_CONNECTIONS  // excess clients get 429 from the limiter",
        ["Repeat the load bursts and confirm zero dropped requests"],
    ),

    "Degradation Under Load": _entry(
        "Response times grow sharply as concurrency increases",
        "The API becomes unusable well before it starts rejecting traffic",
        "Scaling Comparison",
        "Timed bursts of 10, 20 and 30 concurrent requests and compared average completion time",
        'for level in (10, 20, 30): await timed_burst(level, send, level)',
        "Completion time grows less than 100% from lowest to highest level",
        "Completion time more than doubled",
        ["Profile the hot path under load", "Add caching for read-heavy endpoints"],
        "// move pool reads behind a short-lived cache shared across requests",
        ["Repeat the comparison and confirm growth stays under 100%"],
    ),

    # ── Phase 5: permissioned network ──

    "MSP Identity Manipulation": _entry(
        "Requests carrying forged or self-signed MSP identities are accepted",
        "An outsider can act as a member organisation and invoke chaincode in its name",
        "Forged Identity Submission",
        "Posted an invalid MSP certificate, an impersonated MSP id and a CA registration without credentials",
        'await client.post("/v1/identity/validate", json={"mspId": "FakeMSP", "certificate": "-----BEGIN CERTIFICATE-----FAKE"})',
        "Every forged identity refused with 401/403",
        "At least one forged identity returned 200",
        ["Verify every certificate chain against the channel MSP", "Reject identities whose MSP id does not match the signer"],
        "const identity = ctx.clientIdentity; if (!trustedMsps.includes(identity.getMSPID())) throw new Error('untrusted MSP')",
        ["Replay the forged identities and confirm 401/403"],
    ),

    "Channel Access Control": _entry(
        "Channel membership and configuration are not enforced for non-members",
        "Outsiders can join private channels, read their ledger or change channel policy",
        "Channel Membership Bypass",
        "Tried to join a private channel, update channel config, query another channel and subscribe to its events",
        'await client.post("/v1/channels/private-channel/join", json={"mspId": "OutsiderMSP"})',
        "Non-members get 403 or an error body",
        "A channel operation succeeded without an error",
        ["Check channel membership before every channel-scoped route", "Require admin signatures for config updates"],
        "if (!channel.members.includes(mspId)) return res.status(403).json({ error: 'not a channel member' })",
        ["Repeat each channel operation as an outsider"],
    ),

    "Peer Network Security": _entry(
        "The peer network accepts unvetted peers, gossip and endorsements",
        "A rogue peer can poison gossip or satisfy endorsement policy on its own",
        "Rogue Peer Simulation",
        "Registered a malicious peer, broadcast forged gossip and submitted a transaction with fake endorsements",
        'await client.post("/v1/peers/register", json={"peerId": "malicious-peer", "mspId": "AttackerMSP"})',
        "All three requests refused",
        "At least one request returned 200",
        ["Allow peer registration only through the organisation admin", "Validate every endorsement signature"],
        "// gossip: only accept messages signed by peers listed in the channel config",
        ["Resend the rogue peer requests and confirm rejection"],
    ),

    "Organization Privilege Escalation": _entry(
        "Admin operations run for callers without an admin role",
        "Any member can rewrite policies, consensus settings or CA configuration",
        "Role Escalation",
        "Posted admin, policy, consensus and CA operations to /v1/admin/operations as an ordinary member",
        'await client.post("/v1/admin/operations", json={"operation": "assume_admin_role"})',
        "Each operation refused or answered with an error",
        "An admin operation succeeded without an error",
        ["Gate /v1/admin behind an explicit admin role check", "Audit-log every admin operation"],
        "router.use('/v1/admin', requireRole('org-admin'))",
        ["Run the operations as a non-admin and confirm 403"],
    ),

    "Identity Revocation and CRL": _entry(
        "Revoked or expired certificates still authenticate",
        "Credentials stay usable after compromise is detected",
        "Revoked Credential Replay",
        "Invoked chaincode with a revoked certificate, validated an identity with CRL checking disabled and submitted with an expired certificate",
        'await client.post("/v1/chaincode/invoke", json={"certificate": "REVOKED_CERT"})',
        "All three refused",
        "A revoked or expired identity was accepted",
        ["Check the CRL on every request", "Reject certificates past notAfter"],
        "if (crl.isRevoked(cert.serialNumber) || cert.notAfter < Date.now()) throw new Error('identity revoked')",
        ["Revoke a test identity and confirm it is refused"],
    ),

    # ── Phase 6: consensus & ordering ──

    "Ordering Service Manipulation": _entry(
        "Clients can influence transaction order or block creation",
        "Front-running through ordering and forged blocks undermine ledger integrity",
        "Ordering Interference",
        "Submitted a transaction requesting priority ordering, asked to create a block and to disrupt consensus",
        'await client.post("/v1/transactions/submit", json={"priority": "HIGHEST", "forceOrder": 0})',
        "Ordering hints ignored and orderer-only operations refused",
        "The orderer honoured a client ordering request",
        ["Ignore client ordering hints", "Restrict block creation to orderer nodes"],
        "// strip priority/forceOrder fields before forwarding to the orderer",
        ["Resubmit with ordering hints and confirm they have no effect"],
    ),

    "Byzantine Fault Tolerance": _entry(
        "The consensus test endpoint reports broken consensus under Byzantine scenarios",
        "A minority of faulty orderers can halt or fork the network",
        "Byzantine Scenario Simulation",
        "Asked the byzantine test endpoint to simulate malicious orderers, partitions, delays and forks",
        'await client.post("/v1/consensus/byzantine-test", json={"scenario": "malicious_orderer"})',
        "Consensus reported intact in every scenario",
        "consensus_broken was true for a scenario",
        ["Run a BFT ordering service with enough nodes for f faults", "Monitor for forks and stalled blocks"],
        "// SmartBFT: n >= 3f + 1 orderers",
        ["Repeat the scenarios after changing the orderer set"],
    ),

    "Block Validation Security": _entry(
        "Malformed blocks or a tampered genesis block are accepted",
        "Invalid history can enter the ledger",
        "Block Forgery",
        "Validated a structurally invalid block and one with a tampered Merkle root, and created a channel from a forged genesis block",
        'await client.post("/v1/blocks/validate", json={"block": {"header": None}})',
        "Validation fails for every forged block",
        "A forged block was reported valid",
        ["Validate block structure, hashes and signatures", "Pin the genesis block hash per channel"],
        "if (computeMerkleRoot(block.data) !== block.header.dataHash) throw new Error('merkle mismatch')",
        ["Feed the forged blocks to the validator again"],
    ),

    "Transaction Finality Attacks": _entry(
        "Committed transactions can be rolled back or reorganised",
        "Settled trades can be reversed after the counterparty has acted",
        "Finality Challenge",
        "Asked the finality endpoint to roll back, skip finality, reorganise the chain and lower confirmation depth",
        'await client.post("/v1/finality/test", json={"action": "rollback", "txId": "tx_123"})',
        "success is never true",
        "A finality attack reported success",
        ["Treat committed blocks as immutable", "Refuse client-supplied confirmation depths"],
        "// finality: no API path may rewrite committed blocks",
        ["Re-run the finality requests and confirm failure"],
    ),

    "Orderer Performance & DoS": _entry(
        "The orderer accepts unbounded submissions, oversized transactions and channel creation",
        "One client can saturate ordering and delay every other transaction",
        "Submission Flood",
        "Flooded transaction submission, sent one oversized transaction and burst channel-creation requests",
        "await timed_burst(FLOOD_REQUESTS, submit, BURST_CONCURRENCY)",
        "Most of the flood throttled; oversized transactions and unauthorised channel creation refused",
        "The orderer accepted the flood or the oversized transaction",
        ["Rate limit transaction submission per client", "Cap transaction size", "Restrict channel creation to admins"],
        "app.use(express.json({ limit: '100kb' }))",
        ["Repeat the flood and confirm 429s appear"],
    ),

    # ── Phase 7: privacy & confidentiality ──

    "Private Data Collection Security": _entry(
        "Private data collections are readable or writable by non-members",
        "Confidential trading data leaks to other organisations",
        "Collection Access Bypass",
        "Read a private collection as an outside MSP, stored with a forced hash and queried purged records",
        'await client.get("/v1/private-data/trading-secrets", headers={"X-MSP-ID": "UnauthorizedMSP"})',
        "All three refused",
        "Private data was returned or stored",
        ["Enforce collection membership policy", "Never accept client-supplied hashes", "Honour blockToLive purges"],
        "if (!collection.memberOrgs.includes(mspId)) throw new Error('not a collection member')",
        ["Repeat the reads as an outside MSP"],
    ),

    "Channel Isolation Attacks": _entry(
        "Data and events cross channel boundaries",
        "Members of a public channel can observe private channel activity",
        "Cross-Channel Leakage",
        "Asked the isolation test endpoint to read, query the state DB, message across and intercept events of another channel",
        'await client.post("/v1/channels/isolation-test", json={"action": "read_state"})',
        "isolationBroken is never true",
        "Isolation reported broken",
        ["Give each channel its own state database", "Scope event hubs per channel"],
        "// one CouchDB database per channel, credentials per channel",
        ["Re-run the isolation checks"],
    ),

    "Encryption Key Management": _entry(
        "Weak keys are generated, rotated keys still decrypt, or key material reaches logs",
        "Encrypted data can be recovered by anyone who obtains old keys or log access",
        "Key Handling Review",
        "Requested a 56-bit DES key, decrypted with a rotated key and read crypto debug logs",
        'await client.post("/v1/crypto/generate-key", json={"algorithm": "DES", "keySize": 56})',
        "Weak algorithms refused, old keys rejected, no keys in logs",
        "A weak key was issued, old-key decryption worked or logs exposed keys",
        ["Allow only AES-256/ECDSA-P256 and stronger", "Destroy keys after rotation", "Redact key material from logs"],
        "logger.addRedaction(/(private|encryption)_key\\S*/g)",
        ["Search logs for key markers after a rotation"],
    ),

    "Data Anonymization Attacks": _entry(
        "Anonymised data can be re-identified",
        "User identities are recoverable through graph, timing or amount analysis",
        "Re-identification",
        "Asked the anonymisation test endpoint to run graph, timing, amount and cross-reference attacks",
        'await client.post("/v1/privacy/anonymization-test", json={"technique": "graph_analysis"})',
        "No identities revealed",
        "identitiesRevealed was positive or anonymityBroken true",
        ["Add noise to amounts and timestamps", "Break linkability between addresses"],
        "// publish rounded amounts and bucketed timestamps only",
        ["Re-run each technique"],
    ),

    "Zero-Knowledge Proof Vulnerabilities": _entry(
        "Forged proofs verify or proof generation is open to anyone",
        "False statements about balances can be proven",
        "Proof Forgery",
        "Verified a forged proof, ran a trusted setup with retained toxic waste and generated a proof from a fake witness",
        'await client.post("/v1/zk/verify-proof", json={"proof": "FORGED_PROOF_DATA"})',
        "Forged proofs rejected, setup and generation restricted",
        "A forged proof verified or a restricted operation succeeded",
        ["Verify against pinned verification keys only", "Run setup ceremonies offline with multiple parties"],
        "if (vk.hash !== PINNED_VK_HASH) throw new Error('unknown verification key')",
        ["Submit the forged proof again"],
    ),

    "Metadata Leakage": _entry(
        "Response timing or traffic metadata distinguishes users",
        "Observers can link activity to individual users without reading payloads",
        "Timing and Metadata Analysis",
        "Compared average response times across users and requested verbose traffic-pattern metadata",
        'await client.get("/v1/network/traffic-patterns", params={"includeMetadata": "true"})',
        "Timing differences under 100ms and no IPs, session tokens or fingerprints exposed",
        "Users were distinguishable or metadata was exposed",
        ["Pad response times on identity-dependent paths", "Strip client metadata from analytics endpoints"],
        "// respond after a fixed minimum delay on balance lookups",
        ["Repeat the timing comparison"],
    ),

    # ── Phase 8: compliance & regulatory ──

    "AML/KYC Bypass Attempts": _entry(
        "Trades execute without KYC, past daily limits or from sanctioned addresses",
        "The venue processes illicit funds and breaches AML obligations",
        "Compliance Bypass",
        "Traded as an unverified user, split trades past a daily limit and traded from sanctioned addresses",
        'await client.post("/v1/trade/execute", json={"user": {"kycStatus": "PENDING"}, "amountIn": "50000"})',
        "Each attempt refused",
        "A non-compliant trade executed",
        ["Require completed KYC before trading", "Enforce cumulative daily limits", "Screen addresses against sanctions lists"],
        "if (sanctions.has(fromAddress)) return res.status(403).json({ error: 'sanctioned address' })",
        ["Repeat the split-trade burst and confirm the limit holds"],
    ),

    "Jurisdiction Control Bypass": _entry(
        "Restricted jurisdictions gain access through spoofed location signals",
        "The platform serves users it is not licensed to serve",
        "Location Spoofing",
        "Requested access with spoofed forwarding headers, a spoofed IP, a sanctioned destination and structured amounts",
        'await client.post("/v1/compliance/jurisdiction-test", headers={"CF-IPCountry": "US"}, json=...)',
        "accessGranted never true",
        "Access was granted",
        ["Derive location from the connection, not client headers", "Detect VPN and proxy exits"],
        "// trust CF-IPCountry only when the request came through the CDN",
        ["Repeat with spoofed headers"],
    ),

    "Regulatory Reporting Failures": _entry(
        "Reportable activity does not produce a regulatory report",
        "Missed SAR/CTR filings carry regulatory penalties",
        "Reporting Trigger Check",
        "Submitted a structuring pattern, a large transaction with skipReporting and a cross-border transfer",
        'await client.post("/v1/trade/large-transaction", json={"amountIn": "50000", "skipReporting": True})',
        "sarFiled, ctrFiled and reportSubmitted set",
        "A report was not filed",
        ["File reports server-side regardless of client flags"],
        "// ignore skipReporting; file CTR for every transaction over the threshold",
        ["Resubmit the reportable activity and check the filings"],
    ),

    "Data Retention Compliance": _entry(
        "Retention rules and legal holds can be overridden",
        "Records required by law are deleted or moved to non-adequate jurisdictions",
        "Retention Override",
        "Requested deletion of financial records, a legal hold override, audit log purge and a non-adequate transfer",
        'await client.post("/v1/compliance/data-retention", json={"action": "purge_audit_logs"})',
        "dataDeleted, transferAllowed and complianceViolated never true",
        "A retention rule was violated",
        ["Make legal holds immutable from the API", "Keep audit logs append-only"],
        "// audit log table: INSERT only, no DELETE grant",
        ["Repeat the deletion requests"],
    ),

    "License and Registration Validation": _entry(
        "Operations proceed with expired licences, fake registrations or insufficient capital",
        "The platform operates outside its regulatory permissions",
        "Licence Check",
        "Asked to operate with an expired licence, a fake registration and a capital ratio below the requirement",
        'await client.post("/v1/compliance/license-check", json={"licenseStatus": "EXPIRED"})',
        "Each check refuses operation",
        "Operation allowed",
        ["Validate licence status against the regulator registry", "Block trading when capital falls below the requirement"],
        "// licence status refreshed daily from the regulator feed",
        ["Repeat with an expired licence"],
    ),

    "Market Manipulation Detection": _entry(
        "Wash trades and pump-and-dump patterns go undetected",
        "Prices and volume can be manipulated to defraud other traders",
        "Manipulation Pattern Replay",
        "Executed matched buy/sell pairs from one account and submitted a pump-and-dump sequence",
        'await burst(pairs * 2, leg, concurrency)',
        "Most wash pairs refused and manipulation detected",
        "Wash trading completed or the pattern was not detected",
        ["Reject self-matching trades", "Run surveillance on volume and price spikes"],
        "if (order.account === counterparty.account) throw new Error('self-trade prevented')",
        ["Repeat the wash-trade burst"],
    ),

    # ── Phase 10: zero-day & APT ──

    "Novel Attack Pattern Detection": _entry(
        "Obfuscated payloads slip past detection and injection strings are processed",
        "Attackers evade signature-based defences with trivial encoding",
        "Obfuscation and Injection",
        "Sent base64, concatenated, reversed, URL-encoded and hashed payloads to the scanner and injection strings to search",
        'await client.post("/v1/security/scan", json={"content": payload, "type": "OBFUSCATED_INPUT"})',
        "Obfuscated payloads flagged and more than half of injection strings refused",
        "A payload went undetected or injection strings were processed",
        ["Normalise and decode input before scanning", "Reject template and script syntax in search"],
        "const normalised = decodeAll(input)  // base64, URL, reversed",
        ["Re-run the payload set"],
    ),

    "Advanced Persistent Threat Simulation": _entry(
        "APT stages are neither refused nor reported",
        "Long-running intrusions progress without raising an alert",
        "Staged Intrusion",
        "Walked the APT endpoint through reconnaissance, lateral movement, exfiltration and C2",
        'await client.post("/v1/security/apt-simulation", json={"phase": "RECONNAISSANCE"})',
        "Each stage refused or reported as a detected threat",
        "One or more stages undetected",
        ["Correlate events across stages", "Alert on exfiltration channels such as DNS tunnelling"],
        "// SIEM rule: beaconing at irregular intervals to new domains",
        ["Repeat the stages"],
    ),

    "AI/ML Model Adversarial Attacks": _entry(
        "ML models can be poisoned, evaded, extracted or queried for membership",
        "Fraud detection and pricing models can be subverted",
        "Adversarial Requests",
        "Asked the ML endpoint to accept poisoning, FGSM evasion, extraction and membership inference",
        'await client.post("/v1/ml/adversarial-test", json={"attack_type": "DATA_POISONING"})',
        "No attack reported successful",
        "attackSuccessful or modelCompromised was true",
        ["Validate training data provenance", "Rate limit model queries", "Train with adversarial examples"],
        "// cap model queries per client per day",
        ["Repeat each attack type"],
    ),

    "Supply Chain Attack Vectors": _entry(
        "Poisoned dependencies, tampered builds or compromised infrastructure go unnoticed",
        "Malicious code ships to production through the build pipeline",
        "Supply Chain Assessment",
        "Submitted a dependency-confusion package, a tampered build artefact and a compromised CDN report",
        'await client.post("/v1/security/dependency-scan", json={"dependencies": [...]})',
        "Each compromise detected",
        "A compromise was not detected",
        ["Pin internal package scopes to the private registry", "Sign and verify build artefacts", "Use subresource integrity"],
        "<script src=\"...\" integrity=\"sha384-...\" crossorigin=\"anonymous\"></script>",
        ["Repeat the assessment requests"],
    ),

    "Quantum-Ready Cryptographic Attacks": _entry(
        "Cryptography in use is breakable by a sufficiently large quantum computer",
        "Recorded traffic and signatures may be forged or decrypted in future",
        "Quantum Exposure Assessment",
        "Asked for quantum exposure of RSA-2048, ECDSA-P256 and AES-128 and for Shor and Grover simulations",
        'await client.post("/v1/crypto/quantum-assessment", json={"algorithms": ["RSA-2048"]})',
        "No quantum-vulnerable algorithms reported",
        "Quantum-vulnerable algorithms in use",
        ["Inventory cryptographic algorithms", "Plan migration to post-quantum signatures and KEMs"],
        "// hybrid TLS: X25519 + ML-KEM",
        ["Re-run the assessment after migration"],
    ),

    "Emerging Protocol Attacks": _entry(
        "HTTP/3, WebAssembly or GraphQL surfaces are exposed without controls",
        "New protocol features open attack paths the existing filters do not cover",
        "Protocol Surface Check",
        "Requested HTTP/3 attack checks, a WebAssembly module scan and a GraphQL introspection query",
        'await client.post("/v1/graphql", json={"query": "{ __schema { types { name } } }"})',
        "No vulnerabilities found and introspection disabled",
        "A protocol check reported vulnerabilities or introspection returned the schema",
        ["Disable GraphQL introspection in production", "Disable 0-RTT for non-idempotent requests"],
        "new ApolloServer({ introspection: false })",
        ["Repeat the introspection query"],
    ),

    # ── MEV ──

    "Sandwich Attack": _entry(
        "Front-running a large trade and selling back returns more than was spent",
        "Attackers extract value from every large user trade",
        "Sandwich Simulation",
        "Quoted a baseline, the victim trade and a 25000 GALA front-run, then quoted selling the front-run output back",
        'await client.get("/v1/trade/quote", params=quote_params("25000"))',
        "Back-run returns less than the front-run spent",
        "The sandwich was profitable",
        ["Enforce tight slippage limits", "Offer private order flow or commit-reveal submission"],
        "if (amountOut < minAmountOut) throw new Error('slippage exceeded')",
        ["Repeat the sandwich quotes"],
    ),

    "JIT Liquidity": _entry(
        "Pool liquidity and fee growth are visible to just-in-time liquidity providers",
        "Providers can add liquidity for one block to capture fees from large trades",
        "Pool State Review",
        "Read pool liquidity and fee growth for GALA/GUSDC",
        'await client.get("/v1/trade/pool", params=pool_params())',
        "Informational",
        "Informational",
        ["Consider minimum liquidity lock-up periods"],
        "// reject removal of a position in the block it was created",
        ["Monitor for positions opened and closed around large trades"],
    ),

    "Backrunning": _entry(
        "Large trades leave price dislocations a follower can trade against",
        "Arbitrage bots capture value after each large trade",
        "Backrun Quotes",
        "Paired large GALA sells with a small reverse quote",
        'await client.get("/v1/trade/quote", params=reverse_params("100"))',
        "Informational",
        "Informational",
        ["Consider batch auctions for large trades"],
        "// batch orders per block and clear at a uniform price",
        ["Monitor backrun rates after large trades"],
    ),

    # ── Flash loans ──

    "Pool Manipulation": _entry(
        "Round-tripping a huge borrowed amount costs less than a flash-loan fee",
        "Flash-loan funded price manipulation is cheap enough to profit from",
        "Round-Trip Cost",
        "Quoted 10M GALA into GUSDC and back and computed the loss",
        'await client.get("/v1/trade/quote", params=quote_params("10000000"))',
        "Loss of at least 0.09%",
        "Round trip cheaper than a flash-loan fee",
        ["Cap trade size relative to pool depth", "Use time-weighted prices for anything a loan could exploit"],
        "if (amountIn > reserveIn * MAX_TRADE_FRACTION) throw new Error('Trade too large for pool')",
        ["Repeat the round trip"],
    ),

    "Oracle Price Manipulation": _entry(
        "A single large trade moves the pool price far from the oracle price",
        "Protocols reading the spot price can be manipulated inside one transaction",
        "Oracle Impact",
        "Compared the sqrt of the spot price with newSqrtPrice of 100k, 1M and 10M GALA quotes",
        'await client.get("/v1/trade/price", params={"token": "GALA$Unit$none$none"})',
        "Impact no greater than 10%",
        "Impact above 10%",
        ["Serve TWAP prices to consumers", "Cap per-trade price impact"],
        "const price = twap(observations, 30 * 60)",
        ["Repeat the impact measurement"],
    ),

    "Liquidity Exhaustion": _entry(
        "A quote draining half the pool is accepted",
        "A single trade can empty the pool",
        "Drain Quote",
        "Read gross pool liquidity and quoted a trade for half of it",
        'await client.get("/v1/trade/quote", params=quote_params(str(liquidity * 0.5)))',
        "Quote refused",
        "Quote accepted",
        ["Refuse trades above a fraction of pool liquidity"],
        "if (amountIn > grossPoolLiquidity * 0.1) return res.status(400).json({ error: 'trade too large' })",
        ["Repeat the drain quote"],
    ),

    # ── Attack simulation ──

    "Flash Loan Arbitrage": _entry(
        "Fee tiers of the same pair quote materially different rates",
        "Borrowed funds can arbitrage between tiers risk-free",
        "Fee Tier Comparison",
        "Quoted 1M GALA on the 1% and 0.05% tiers and compared rates",
        'await client.get("/v1/trade/quote", params={**quote_params("1000000"), "fee": 500})',
        "Profit from the rate gap no more than 1000 GUSDC",
        "The rate gap is profitable",
        ["Implement TWAP oracles", "Limit large swaps"],
        "// route large trades across tiers so the rates converge",
        ["Repeat the comparison"],
    ),

    "Oracle Manipulation": _entry(
        "Concurrent price reads return different prices",
        "Consumers act on inconsistent prices that can be gamed",
        "Rapid Polling",
        "Polled the price endpoint concurrently and counted distinct prices",
        "await burst(20, lambda i: client.get(\"/v1/trade/price\", params=...), 20)",
        "One distinct price",
        "Several distinct prices",
        ["Serve prices from one snapshot per block"],
        "// cache the price per block height",
        ["Repeat the polling"],
    ),

    "DoS - Connection Flood": _entry(
        "A flood of connections is served without any throttling",
        "A single client can exhaust server capacity",
        "Connection Flood",
        "Sent 50 concurrent price requests with a 100ms timeout and counted refused or timed-out requests",
        "await timed_burst(50, send, 25)",
        "At least 10 requests refused or timed out",
        "Nearly every request was served",
        ["Implement rate limiting per IP/wallet"],
        "limiter = rateLimit({ windowMs: 1000, max: 10 })",
        ["Repeat the flood"],
    ),

    "DoS - Payload Handling": _entry(
        "Oversized or self-referencing token strings are processed",
        "Parser work grows with attacker-controlled input",
        "Hostile Token Strings",
        "Sent a 10KB token string and a nested token definition to the price endpoint",
        'await client.get("/v1/trade/price", params={"token": "GALA$Unit$" + "A" * 10000 + "$none"})',
        "Both refused",
        "A hostile token string was processed",
        ["Bound token string length", "Reject nested token syntax"],
        "if (token.length > 256 || token.includes('${')) return res.status(400).end()",
        ["Resend both strings"],
    ),

    "Reentrancy Test": _entry(
        "Identical concurrent quotes observe different pool state",
        "Racy state reads can be exploited by interleaved requests",
        "Concurrent State Read",
        "Fired identical quotes in parallel and compared newSqrtPrice",
        "await burst(5, lambda i: client.get(\"/v1/trade/quote\", params=quote_params(\"1000\")), 5)",
        "All quotes agree",
        "Quotes disagree",
        ["Read pool state from one consistent snapshot per request"],
        "// wrap quote computation in a read transaction",
        ["Repeat the parallel quotes"],
    ),

    # ── Extended surface ──

    "Liquidity Provision Security": _entry(
        "Liquidity estimates are served for edge-case inputs",
        "Informational; unusual liquidity inputs may hint at missing validation",
        "Edge-Case Estimates",
        "Requested add-liquidity estimates for zero, huge and inverted tick range inputs",
        'await client.get("/v1/trade/add-liq-estimate", params={..., "amount": "0"})',
        "Informational",
        "Informational",
        ["Monitor for unusual liquidity patterns"],
        "if (tickLower >= tickUpper) return res.status(400).json({ error: 'invalid tick range' })",
        ["Review the recorded outcomes after API changes"],
    ),

    "Transaction Enumeration": _entry(
        "Guessed transaction ids return status data",
        "Anyone can enumerate other users' transactions",
        "Id Guessing",
        "Looked up zero, repeated, made-up and traversal transaction ids",
        'await client.get("/v1/trade/transaction-status", params={"id": "00000000-0000-0000-0000-000000000000"})',
        "No data for any guessed id",
        "Data returned for a guessed id",
        ["Validate transaction IDs belong to requesting user"],
        "if (tx.owner !== req.user.address) return res.status(404).end()",
        ["Repeat the lookups"],
    ),

    "Price Oracle Security": _entry(
        "Oracle subscription and bulk history are open to anonymous clients",
        "Informational; the oracle can be used for bulk scraping",
        "Oracle Access",
        "Subscribed to a token and fetched 10000 rows of history",
        'await client.post("/price-oracle/fetch-price", json={"limit": 10000})',
        "Informational",
        "Informational",
        ["Consider rate limiting on oracle queries"],
        "limit = Math.min(req.body.limit, 500)",
        ["Monitor oracle request volume"],
    ),

    # ── Advanced endpoints ──

    "Token Metadata Injection": _entry(
        "Token ids containing markup, traversal or padding are processed",
        "Unsanitised token metadata can reach logs, UIs and file paths",
        "Metadata Injection",
        "Requested prices for tokens with a script tag, a traversal path and an oversized key",
        'await client.get("/v1/trade/price", params={"token": "<script>alert(1)</script>$Unit$none$none"})',
        "All refused",
        "A hostile token id was processed",
        ["Sanitize token metadata inputs", "Validate token ids against an allow-list pattern"],
        "const TOKEN_RE = /^[A-Za-z0-9]{1,32}(\\$[A-Za-z0-9]{1,32}){3}$/",
        ["Resend the hostile ids"],
    ),

    "Bundle Submission Validation": _entry(
        "Malformed transaction bundles are accepted",
        "Unvalidated bundles can crash workers or smuggle operations",
        "Malformed Bundles",
        "Posted null, empty, 1000-entry and traversal bundles",
        'await client.post("/v1/trade/bundle", json={"bundle": None})',
        "All refused",
        "A malformed bundle was accepted",
        ["Validate bundle structure and authentication", "Cap bundle size"],
        "const schema = z.object({ bundle: z.array(txSchema).min(1).max(50) })",
        ["Resend the malformed bundles"],
    ),

    "Historical Data Access": _entry(
        "A single page returns a very large slice of price history",
        "Bulk scraping loads the database and the network",
        "Oversized Page",
        "Requested 100000 rows of price history in one page",
        'await client.get("/price-oracle/fetch-price", params={"limit": 100000})',
        "Fewer than 10000 rows returned",
        "10000 or more rows returned",
        ["Implement pagination limits"],
        "limit = Math.min(req.query.limit, 1000)",
        ["Repeat the oversized request"],
    ),
}
REMEDIATION_GUIDE["Pool Creation Without Auth"] = REMEDIATION_GUIDE["Pool Creation Security"]
REMEDIATION_GUIDE["MEV Vulnerability"] = REMEDIATION_GUIDE["Sandwich Attack"]

FALLBACK = {
    "description": "No detailed information available for this issue",
    "remediation": {
        "immediate": [
            "Review the test results",
            "Investigate the issue",
            "Implement appropriate fixes",
        ],
    },
}


def lookup(name: str, category: str = "") -> Optional[dict]:
    """Exact name, then the part after ``": "``, then the name with
    its category prefix removed."""
    if name in REMEDIATION_GUIDE:
        return REMEDIATION_GUIDE[name]
    if ": " in name:
        tail = name.split(": ", 1)[1]
        if tail in REMEDIATION_GUIDE:
            return REMEDIATION_GUIDE[tail]
    if category and name.startswith(f"{category}: "):
        return REMEDIATION_GUIDE.get(name[len(category) + 2:])
    return None


def lookup_or_fallback(name: str, category: str = "") -> dict:
    return lookup(name, category) or FALLBACK
