PROXY_URL = "http://proxy.test/api/proxy"
STORE_URL = "http://store.test/api"


class FakeEnvironmentStore:
    """In-memory environment store that counts lookups."""

    def __init__(self, bindings_by_env=None):
        self.bindings_by_env = bindings_by_env or {}
        self.calls = []

    async def enabled_bindings(self, environment_id):
        self.calls.append(environment_id)
        return [b for b in self.bindings_by_env.get(environment_id, []) if b.enabled]
