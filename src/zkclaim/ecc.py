from enum import Enum
from typing import Union

from py_ecc import optimized_bn128
from py_ecc.fields import optimized_bn128_FQ, optimized_bn128_FQ2


class CurveType(Enum):
    BN128 = optimized_bn128
    BN254 = optimized_bn128
    ALT_BN128 = optimized_bn128


class CurveFQ(Enum):
    BN128 = optimized_bn128_FQ
    BN254 = optimized_bn128_FQ
    ALT_BN128 = optimized_bn128_FQ


class CurveFQ2(Enum):
    BN128 = optimized_bn128_FQ2
    BN254 = optimized_bn128_FQ2
    ALT_BN128 = optimized_bn128_FQ2


class EllipticCurve:
    def __init__(self, curve: str = "BN254"):
        self.name = curve
        self.curve = CurveType[curve].value
        self.order = self.curve.curve_order

    def G1(self):
        return Curve(*self.curve.G1, self.name, False)

    def G2(self):
        return Curve(*self.curve.G2, self.name, False)

    def __call__(self, x, y, z=1):
        return Curve(x, y, z, self.name, True)


class Curve:
    """Projective BN254 point, G1 over FQ or G2 over FQ2"""

    def __init__(
        self,
        x: Union[int, tuple, list],
        y: Union[int, tuple, list],
        z: Union[int, tuple, list],
        crv: str,
        verify=True,
    ):
        self.name = crv
        self.curve = CurveType[crv].value

        if isinstance(x, (tuple, list)):
            # G2 coordinates as (c0, c1) pairs, a scalar z means (z, 0)
            if not isinstance(z, (tuple, list)):
                z = (z, 0)
            fq2 = CurveFQ2[crv].value
            self.point = (fq2(list(x)), fq2(list(y)), fq2(list(z)))
            b = self.curve.b2
        elif isinstance(x, int):
            fq = CurveFQ[crv].value
            self.point = (fq(x), fq(y), fq(z))
            b = self.curve.b
        else:
            # field elements coming out of py_ecc arithmetic
            self.point = (x, y, z)
            verify = False

        if verify:
            assert self.curve.is_on_curve(self.point, b), "Point is not on the curve"

    def _wrap(self, point) -> "Curve":
        return Curve(point[0], point[1], point[2], self.name, False)

    def __add__(self, other):
        if not isinstance(other, Curve):
            raise TypeError(
                f"Addition of {type(self)} with {type(other)} is not allowed"
            )

        return self._wrap(self.curve.add(self.point, other.point))

    def __mul__(self, other):
        if not isinstance(other, int):
            raise TypeError(
                f"Multiplication of {type(self)} with {type(other)} is not allowed"
            )

        return self._wrap(self.curve.multiply(self.point, other))

    def __eq__(self, other):
        if not isinstance(other, Curve):
            return NotImplemented
        return self.curve.eq(self.point, other.point)

    def affine(self):
        """Affine coordinates as ints, G2 coordinates as (c0, c1) pairs"""
        x, y = self.curve.normalize(self.point)
        if isinstance(x, CurveFQ2[self.name].value):
            return tuple(int(c) for c in x.coeffs), tuple(int(c) for c in y.coeffs)
        return int(x), int(y)
