"""
Script untuk generate security keys yang aman untuk AuthCore.
"""

import base64
import secrets
import string
from pathlib import Path


def generate_secret_key(length: int = 64) -> str:
    """Generate random secret key (JWT signing, key derivation salt)."""
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*()_+-=[]{}|;:,.<>?"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_encryption_key() -> str:
    """Generate key material untuk enkripsi TOTP secret."""
    return base64.urlsafe_b64encode(secrets.token_bytes(32)).decode()


def generate_all_keys() -> dict:
    """Generate all required security keys."""
    return {
        "SECRET_KEY": generate_secret_key(64),
        "ENCRYPTION_KEY": generate_encryption_key(),
    }


def update_env_file(env_path: Path = Path(".env")) -> None:
    """Isi key yang masih kosong/placeholder di .env yang sudah ada."""
    if not env_path.exists():
        print(f".env file not found at {env_path}")
        return

    with open(env_path, "r") as f:
        lines = f.readlines()

    keys = generate_all_keys()

    updated_lines = []
    for line in lines:
        for key_name, key_value in keys.items():
            if line.startswith(f"{key_name}=") and ("your-" in line or line.strip().endswith(('=""', "="))):
                line = f'{key_name}="{key_value}"\n'
                print(f"Updated {key_name}")
                break
        updated_lines.append(line)

    with open(env_path, "w") as f:
        f.writelines(updated_lines)

    print(f"\nUpdated .env file: {env_path}")
    print("IMPORTANT: Keep these keys secret. Rotating ENCRYPTION_KEY makes stored 2FA secrets unreadable.")


def main() -> None:
    """Main function."""
    print("AuthCore Key Generator")
    print("=" * 50)

    env_path = Path(".env")
    if env_path.exists():
        response = input("\n.env file exists. Update missing/placeholder keys? (y/n): ")
        if response.lower() == "y":
            update_env_file(env_path)
            return

    print("\nGenerated keys:")
    print("=" * 50)
    for key_name, key_value in generate_all_keys().items():
        print(f'{key_name}="{key_value}"')
    print("=" * 50)


if __name__ == "__main__":
    main()
