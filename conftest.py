import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough")
os.environ.setdefault("APP_URL", "http://auth.localhost")
os.environ.setdefault("STATE_STORE", "memory")
os.environ.setdefault("PSEUDOIDC_CLIENT_ID", "test-client")
os.environ.setdefault("PSEUDOIDC_CLIENT_SECRET", "test-client-secret")
