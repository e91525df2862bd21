# LocalPass - Random Password Generator
#
# Independent of vault state. Uses the secrets module (CSPRNG).

import secrets
import string

SYMBOLS = "!@#$%^&*()_+~`|}{[]:;?><,./-="
MIN_LENGTH = 4
MAX_LENGTH = 128


def generate_password(
    length: int = 16,
    uppercase: bool = True,
    lowercase: bool = True,
    numbers: bool = True,
    symbols: bool = True,
) -> str:
    """
    Generate a random password.

    At least one character from every selected class is included.

    Raises:
        ValueError: No character class selected, or length out of range
    """
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        raise ValueError(f"length must be between {MIN_LENGTH} and {MAX_LENGTH}")

    pools = []
    if uppercase:
        pools.append(string.ascii_uppercase)
    if lowercase:
        pools.append(string.ascii_lowercase)
    if numbers:
        pools.append(string.digits)
    if symbols:
        pools.append(SYMBOLS)
    if not pools:
        raise ValueError("Select at least one character class")

    alphabet = "".join(pools)
    chars = [secrets.choice(pool) for pool in pools]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]

    # Shuffle so the guaranteed characters are not always first
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)
