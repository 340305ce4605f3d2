"""
Native Poseidon hash over the BN254 scalar field

Evaluates the same permutation as circomlib's `Poseidon(n)` template:
x^5 S-box, 8 full rounds and the circomlib partial round schedule.
Round constants and the Cauchy MDS matrix are derived with the Grain LFSR
from the Poseidon reference parameter generator.

Heavily referenced from:
https://extgit.iaik.tugraz.at/krypto/hadeshash/-/blob/master/code/generate_parameters_grain.sage
"""

from functools import lru_cache

from ..constant import BN254_SCALAR_FIELD

N_ROUNDS_F = 8
N_ROUNDS_P = [56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68]


def _to_bits(value: int, n: int):
    return [(value >> i) & 1 for i in reversed(range(n))]


class Grain:
    """Grain LFSR in self-shrinking mode"""

    def __init__(self, field_size: int, t: int, r_f: int, r_p: int):
        # field = prime (1), sbox = x^alpha (0)
        self.state = (
            _to_bits(1, 2)
            + _to_bits(0, 4)
            + _to_bits(field_size, 12)
            + _to_bits(t, 12)
            + _to_bits(r_f, 10)
            + _to_bits(r_p, 10)
            + [1] * 30
        )
        assert len(self.state) == 80

        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self.state
        new_bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(new_bit)
        return new_bit

    def next_bit(self) -> int:
        # emit the second bit of a pair only when the first one is set
        while True:
            first = self._clock()
            second = self._clock()
            if first == 1:
                return second

    def random_bits(self, n: int) -> int:
        value = 0
        for _ in range(n):
            value = (value << 1) | self.next_bit()
        return value


class PoseidonParams:
    def __init__(self, t: int, p: int = BN254_SCALAR_FIELD):
        assert 2 <= t <= len(N_ROUNDS_P) + 1, "Poseidon supports 1 to 16 inputs"

        self.t = t
        self.p = p
        self.n_rounds_f = N_ROUNDS_F
        self.n_rounds_p = N_ROUNDS_P[t - 2]

        field_size = p.bit_length()
        grain = Grain(field_size, t, self.n_rounds_f, self.n_rounds_p)

        n_constants = (self.n_rounds_f + self.n_rounds_p) * t
        self.C = []
        for _ in range(n_constants):
            c = grain.random_bits(field_size)
            while c >= p:
                c = grain.random_bits(field_size)
            self.C.append(c)

        self.M = self._cauchy_matrix(grain, field_size)

    def _cauchy_matrix(self, grain: Grain, field_size: int):
        t, p = self.t, self.p
        while True:
            rand = [grain.random_bits(field_size) % p for _ in range(2 * t)]
            while len(set(rand)) != 2 * t:
                rand = [grain.random_bits(field_size) % p for _ in range(2 * t)]

            xs, ys = rand[:t], rand[t:]
            if any((x + y) % p == 0 for x in xs for y in ys):
                continue

            return [[pow(x + y, -1, p) for y in ys] for x in xs]


@lru_cache(maxsize=None)
def poseidon_params(t: int, p: int = BN254_SCALAR_FIELD) -> PoseidonParams:
    return PoseidonParams(t, p)


class PoseidonHash:
    """
    Poseidon hash with a fixed number of inputs

    Args:
        n_inputs: arity of the hash (1 to 16)
        p: prime field modulus
    """

    def __init__(self, n_inputs: int, p: int = BN254_SCALAR_FIELD):
        assert 0 < n_inputs < 17
        self.n_inputs = n_inputs
        self.p = p
        self._params = None

    @property
    def params(self) -> PoseidonParams:
        if self._params is None:
            self._params = poseidon_params(self.n_inputs + 1, self.p)
        return self._params

    def _ark(self, state, r):
        t, C, p = self.params.t, self.params.C, self.p
        return [(state[i] + C[r + i]) % p for i in range(t)]

    def _sigma(self, x):
        return pow(x, 5, self.p)

    def _mix(self, state):
        M, p = self.params.M, self.p
        return [sum(m * s for m, s in zip(row, state)) % p for row in M]

    def permute(self, state):
        params = self.params
        t = params.t
        half_f = params.n_rounds_f // 2
        assert len(state) == t

        r = 0
        for _ in range(half_f):
            state = self._ark(state, r)
            r += t
            state = [self._sigma(x) for x in state]
            state = self._mix(state)

        for _ in range(params.n_rounds_p):
            state = self._ark(state, r)
            r += t
            state[0] = self._sigma(state[0])
            state = self._mix(state)

        for _ in range(half_f):
            state = self._ark(state, r)
            r += t
            state = [self._sigma(x) for x in state]
            state = self._mix(state)

        return state

    def __call__(self, *inputs) -> int:
        if len(inputs) == 1 and isinstance(inputs[0], (list, tuple)):
            inputs = tuple(inputs[0])

        assert (
            len(inputs) == self.n_inputs
        ), f"Expected {self.n_inputs} inputs, got {len(inputs)}"

        state = [0] + [x % self.p for x in inputs]
        return self.permute(state)[0]


def poseidon(*inputs) -> int:
    """Hash any number (1 to 16) of field elements with Poseidon"""
    if len(inputs) == 1 and isinstance(inputs[0], (list, tuple)):
        inputs = tuple(inputs[0])
    return PoseidonHash(len(inputs))(*inputs)
