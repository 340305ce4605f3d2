BN254_MODULUS = (
    21888242871839275222246405745257275088696311157297823662689037894645226208583
)
BN254_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

SNARK_FIELD = BN254_SCALAR_FIELD

ZERO_VALUE = 0
