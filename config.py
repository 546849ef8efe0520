import os
import yaml
import keyring

APP_VERSION = "1.0.0"
KEYRING_SERVICE = "liftlog"
KEYRING_PLACEHOLDER = "<keyring>"


class YamlConfig:
    """Read and write the LiftLog settings file.

    With ``ENCRYPT_SETTINGS=1`` (or ``encrypt=True``) the model API key is
    stored in the OS keyring under the ``liftlog`` service and the YAML file
    only holds ``KEYRING_PLACEHOLDER`` in its place.
    """

    SENSITIVE_KEYS = ("gemini_api_key",)

    def __init__(self, path: str = "settings.yaml", encrypt: bool | None = None) -> None:
        self.path = path
        if encrypt is None:
            encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.encrypt = encrypt

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping of settings")
        return data

    def load(self) -> dict:
        data = self._read()
        if self.encrypt:
            for key in self.SENSITIVE_KEYS:
                if key not in data:
                    continue
                secret = keyring.get_password(KEYRING_SERVICE, key)
                if secret:
                    data[key] = secret
                else:
                    # placeholder without a stored secret
                    data.pop(key)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            for key in self.SENSITIVE_KEYS:
                value = out.get(key)
                if value in (None, "", KEYRING_PLACEHOLDER):
                    continue
                keyring.set_password(KEYRING_SERVICE, key, str(value))
                out[key] = KEYRING_PLACEHOLDER
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f, sort_keys=True)
