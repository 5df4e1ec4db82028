import random
import secrets


class CodeGenerator:
    """Fixed-width numeric transfer codes, drawn uniformly.

    With the default length of 6 the codes span 100000-999999. The default
    source is the OS CSPRNG so codes cannot be guessed from the clock.
    """

    def __init__(self, length: int = 6, rng: random.Random | None = None):
        if length < 1:
            raise ValueError("code length must be >= 1")
        self.length = length
        self.rng = rng or secrets.SystemRandom()
        self._low = 10 ** (length - 1)
        self._high = 10**length - 1

    def generate(self) -> str:
        return str(self.rng.randint(self._low, self._high))
