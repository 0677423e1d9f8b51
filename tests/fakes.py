"""In-memory stand-in for the Supabase backend and the async clients the gateway builds."""

import itertools
from types import SimpleNamespace

from storefront.db.gateway import AuthStorage

ANON_KEY = "anon-key"
VERIFIER_KEY = "supabase.auth.token-code-verifier"


class FakeAPIError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class FakeQuery:
    def __init__(self, db, table, bearer):
        self.db = db
        self.table = table
        self.bearer = bearer
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.range_ = None
        self.single_ = False
        self.count = None
        self.head = False

    def select(self, *columns, count=None, head=None):
        self.op = "select"
        self.count = count
        self.head = bool(head)
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def range(self, start, end):
        self.range_ = (start, end)
        return self

    def single(self):
        self.single_ = True
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    async def execute(self):
        self.db.calls.append((self.table, self.op))
        self.db.bearers.append((self.table, self.op, self.bearer))
        failure = self.db.failures.get((self.table, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for r in payload:
                row = {"id": str(next(self.db.ids)), "created_at": f"2026-01-{len(rows) + 1:02d}", **r}
                rows.append(row)
                created.append(dict(row))
            data = self.db.insert_shapes.get(self.table, lambda d: d)(created)
            return SimpleNamespace(data=data, count=None)

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: str(r.get(column, "")), reverse=desc)
        if self.range_:
            start, end = self.range_
            matched = matched[start:end + 1]

        count = len(matched) if self.count == "exact" else None
        if self.head:
            return SimpleNamespace(data=[], count=count)
        if self.single_:
            if len(matched) != 1:
                raise FakeAPIError("JSON object requested, multiple (or no) rows returned")
            return SimpleNamespace(data=dict(matched[0]), count=count)
        return SimpleNamespace(data=[dict(r) for r in matched], count=count)


class FakeAuth:
    """Auth API of one client; PKCE verifiers live in that client's storage only."""

    def __init__(self, db, storage):
        self.db = db
        self.storage = storage
        self.admin = SimpleNamespace(sign_out=self._sign_out)

    def _session(self, user):
        token = f"token-{user.id}"
        self.db.tokens[token] = user
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=token))

    async def sign_up(self, credentials):
        user = SimpleNamespace(id=f"user-{next(self.db.ids)}", email=credentials["email"], user_metadata={})
        self.db.passwords[credentials["email"]] = (credentials["password"], user)
        return self._session(user)

    async def sign_in_with_password(self, credentials):
        stored = self.db.passwords.get(credentials["email"])
        if not stored or stored[0] != credentials["password"]:
            raise FakeAPIError("Invalid login credentials")
        return self._session(stored[1])

    async def get_user(self, jwt):
        user = self.db.tokens.get(jwt)
        if user is None:
            raise FakeAPIError("invalid JWT")
        return SimpleNamespace(user=user)

    async def _sign_out(self, jwt):
        self.db.tokens.pop(jwt, None)

    async def sign_in_with_oauth(self, credentials):
        n = next(self.db.ids)
        verifier = f"verifier-{n}"
        await self.storage.set_item(VERIFIER_KEY, verifier)
        self.db.oauth_flows[f"code-{n}"] = verifier
        provider = credentials["provider"]
        return SimpleNamespace(provider=provider, url=f"https://auth.example/{provider}?code_challenge=challenge-{n}")

    async def exchange_code_for_session(self, params):
        verifier = params.get("code_verifier") or await self.storage.get_item(VERIFIER_KEY)
        expected = self.db.oauth_flows.pop(params.get("auth_code"), None)
        if expected is None:
            raise FakeAPIError("invalid flow state, no valid flow state found")
        if verifier != expected:
            raise FakeAPIError("code challenge does not match previously saved code verifier")
        user = SimpleNamespace(id="oauth-user", email="oauth@example.com", user_metadata={"full_name": "OAuth User"})
        return self._session(user)


class FakePostgrest:
    def __init__(self, client):
        self.client = client

    def auth(self, token):
        self.client.bearer = token


class FakeClient:
    def __init__(self, db, key, options=None):
        self.db = db
        self.bearer = key
        self.postgrest = FakePostgrest(self)
        storage = getattr(options, "storage", None)
        self.auth = FakeAuth(db, storage if storage is not None else AuthStorage())

    def table(self, name):
        return FakeQuery(self.db, name, self.bearer)


class FakeSupabase:
    """Backend state shared by every client built during a test."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.bearers = []
        self.failures = {}
        self.insert_shapes = {}
        self.tokens = {}
        self.passwords = {}
        self.oauth_flows = {}
        self.ids = itertools.count(1)

    def client(self, key, options=None):
        return FakeClient(self, key, options)

    def fail(self, table, op, message="backend error"):
        self.failures[(table, op)] = FakeAPIError(message)

    def rows(self, table):
        return self.tables.get(table, [])

    def calls_to(self, table, op):
        return sum(1 for t, o in self.calls if t == table and o == op)

    def bearers_for(self, table, op):
        """Authorization token each matching query ran with, in call order."""
        return [b for t, o, b in self.bearers if t == table and o == op]

    def issued_code(self):
        """The code the provider would hand to the callback for the latest OAuth start."""
        return list(self.oauth_flows)[-1]

    def login(self, user_id, email="user@example.com"):
        """Registers a session token for user_id and returns it."""
        user = SimpleNamespace(id=user_id, email=email, user_metadata={})
        token = f"token-{user_id}"
        self.tokens[token] = user
        return token
