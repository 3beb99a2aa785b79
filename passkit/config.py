from pydantic import BaseModel
import os
from pathlib import Path

_PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseModel):
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./passkit.db")

    # Environment (dev, staging, prod)
    ENV: str = os.getenv("ENV", "dev")

    # Pass identity
    PASSKIT_PASS_TYPE_IDENTIFIER: str = os.getenv("PASSKIT_PASS_TYPE_IDENTIFIER", "pass.com.example.passkit")
    PASSKIT_TEAM_IDENTIFIER: str = os.getenv("PASSKIT_TEAM_IDENTIFIER", "YOUR_TEAM_ID")
    PASSKIT_ORGANIZATION_NAME: str = os.getenv("PASSKIT_ORGANIZATION_NAME", "Example Organization")

    # PassKit web service (only written into pass.json when the URL is set)
    PASSKIT_WEB_SERVICE_URL: str = os.getenv("PASSKIT_WEB_SERVICE_URL", "")
    PASSKIT_AUTH_TOKEN: str = os.getenv("PASSKIT_AUTH_TOKEN", "")

    # Signing material (PEM). Relative paths are also looked up in fallback locations.
    PASSKIT_CERT_PATH: str = os.getenv("PASSKIT_CERT_PATH", "certs/pass-certificate.pem")
    PASSKIT_KEY_PATH: str = os.getenv("PASSKIT_KEY_PATH", "certs/pass-private-key.pem")
    PASSKIT_KEY_PASSWORD: str = os.getenv("PASSKIT_KEY_PASSWORD", "")
    PASSKIT_WWDR_PATH: str = os.getenv("PASSKIT_WWDR_PATH", "certs/wwdr.pem")

    # Static pass images (icon.png, icon@2x.png, icon@3x.png)
    PASSKIT_ASSETS_DIR: str = os.getenv("PASSKIT_ASSETS_DIR", str(_PACKAGE_DIR / "static" / "pass"))

    # Apple Wallet pass push (APNs)
    APPLE_PASS_PUSH_ENABLED: bool = os.getenv("APPLE_PASS_PUSH_ENABLED", "false").lower() == "true"
    APPLE_WALLET_APNS_KEY_ID: str = os.getenv("APPLE_WALLET_APNS_KEY_ID", "")
    APPLE_WALLET_APNS_TEAM_ID: str = os.getenv("APPLE_WALLET_APNS_TEAM_ID", "")
    APPLE_WALLET_APNS_AUTH_KEY_PATH: str = os.getenv("APPLE_WALLET_APNS_AUTH_KEY_PATH", "")
    APPLE_WALLET_APNS_ENV: str = os.getenv("APPLE_WALLET_APNS_ENV", "sandbox")  # sandbox or production

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL

    @property
    def web_service_enabled(self) -> bool:
        return bool(self.PASSKIT_WEB_SERVICE_URL)

    @property
    def apns_configured(self) -> bool:
        """True only if push is enabled AND key id, team id and auth key path are all set."""
        if not self.APPLE_PASS_PUSH_ENABLED:
            return False
        return bool(
            self.APPLE_WALLET_APNS_KEY_ID and
            self.APPLE_WALLET_APNS_TEAM_ID and
            self.APPLE_WALLET_APNS_AUTH_KEY_PATH
        )


settings = Settings()
