"""Redis-backed authorization code store, shared by every API instance.

KEYS AND VALUES
---------------
Each live code is one string key ``authcode:<sha256(code)>`` holding the
JSON-encoded record (without the raw code).  The key is written with
``SET NX PX``:

  NX: the write fails if the key exists, which is how a duplicate code is
       detected without a separate (racy) EXISTS check.
  PX: Redis expires the key at the code's deadline, so abandoned codes
       reclaim themselves even if no sweeper runs.

SINGLE REDEMPTION
-----------------
A GET followed by a DEL from Python would let two API instances both read
the record before either deletes it: two token responses for one code.
The lookup, expiry check, client check and delete therefore run as one Lua
script.  Redis executes a script atomically, so exactly one caller sees
the record.

The script compares ``expires_at`` against the caller's clock instead of
relying on the key TTL alone; PX has millisecond rounding and a key can
outlive its deadline by a few ms.
"""

from __future__ import annotations

import json

from redis.exceptions import RedisError

from authcode.core.clock import Clock, system_clock
from authcode.core.errors import DuplicateCodeError, StorageUnavailable
from authcode.models.authorization_code import AuthorizationCode
from authcode.repos.auth_code_store import (
    CLIENT_MISMATCH,
    NOT_FOUND,
    MismatchPolicy,
    Redemption,
)
from authcode.services.code_generator import hash_code


class RedisAuthCodeStore:
    name = "redis"

    _PREFIX = "authcode:"

    # KEYS[1] = record key
    # ARGV[1] = presenting client_id, ARGV[2] = now, ARGV[3] = mismatch policy
    # Returns {outcome, raw}: 0 = not found, 1 = redeemed, 2 = client mismatch
    _TAKE_SCRIPT = """
    local raw = redis.call('GET', KEYS[1])
    if not raw then
        return {0, ''}
    end

    local record = cjson.decode(raw)
    if tonumber(record['expires_at']) <= tonumber(ARGV[2]) then
        redis.call('DEL', KEYS[1])
        return {0, ''}
    end

    if record['client_id'] ~= ARGV[1] then
        if ARGV[3] == 'delete' then
            redis.call('DEL', KEYS[1])
        end
        return {2, ''}
    end

    redis.call('DEL', KEYS[1])
    return {1, raw}
    """

    # KEYS = one SCAN batch of record keys, ARGV[1] = now.
    # Returns how many of them were past their deadline and deleted.
    _PURGE_SCRIPT = """
    local purged = 0
    for _, key in ipairs(KEYS) do
        local raw = redis.call('GET', key)
        if raw then
            local record = cjson.decode(raw)
            if tonumber(record['expires_at']) <= tonumber(ARGV[1]) then
                redis.call('DEL', key)
                purged = purged + 1
            end
        end
    end
    return purged
    """

    def __init__(
        self,
        redis_client,
        *,
        mismatch_policy: MismatchPolicy = "delete",
        clock: Clock = system_clock,
    ) -> None:
        self._redis = redis_client
        self._mismatch_policy = mismatch_policy
        self._clock = clock
        self._take = None
        self._purge = None

    def _key(self, code_hash: str) -> str:
        return f"{self._PREFIX}{code_hash}"

    def _scripts(self):
        if self._take is None:
            self._take = self._redis.register_script(self._TAKE_SCRIPT)
            self._purge = self._redis.register_script(self._PURGE_SCRIPT)
        return self._take, self._purge

    async def put(self, record: AuthorizationCode) -> None:
        code_hash = hash_code(record.code)
        ttl_ms = max(1, int((record.expires_at - self._clock()) * 1000))
        try:
            stored = await self._redis.set(
                self._key(code_hash),
                json.dumps(record.to_dict()),
                nx=True,
                px=ttl_ms,
            )
        except RedisError as exc:
            raise StorageUnavailable("redis put failed") from exc
        if not stored:
            raise DuplicateCodeError(f"code {code_hash[:12]}… already stored")

    async def take_if_valid(self, code: str, client_id: str) -> Redemption:
        take, _ = self._scripts()
        try:
            outcome, raw = await take(
                keys=[self._key(hash_code(code))],
                args=[client_id, repr(self._clock()), self._mismatch_policy],
            )
        except RedisError as exc:
            raise StorageUnavailable("redis take failed") from exc

        outcome = int(outcome)
        if outcome == 1:
            return Redemption.redeemed(
                AuthorizationCode.from_dict(json.loads(raw), code=code)
            )
        if outcome == 2:
            return CLIENT_MISMATCH
        return NOT_FOUND

    async def purge_expired(self, now: float | None = None) -> int:
        # Key TTLs already reclaim memory; this pass only catches keys that
        # are past their deadline but not yet evicted.
        _, purge = self._scripts()
        cutoff = repr(self._clock() if now is None else now)
        purged = 0
        cursor = 0
        try:
            while True:
                cursor, keys = await self._redis.scan(
                    cursor, match=f"{self._PREFIX}*", count=100
                )
                if keys:
                    purged += int(await purge(keys=keys, args=[cutoff]))
                if cursor == 0:
                    break
        except RedisError as exc:
            raise StorageUnavailable("redis purge failed") from exc
        return purged

    async def ping(self) -> None:
        try:
            await self._redis.ping()  # type: ignore[misc]
        except RedisError as exc:
            raise StorageUnavailable("redis unreachable") from exc
