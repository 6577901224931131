from psl import types, op, Errors
import pytest


class TestResolveBinaryExpressionType:
    def testMatrixVector(self):
        m44 = types.MatrixType(types.Float(), 4, 4)
        f4 = types.VectorType(types.Float(), 4)

        r = types.ResolveBinaryExpressionType(op.Operation.MUL, m44, f4)

        assert r == f4

    def testMatrixVectorPromotesComponents(self):
        m44 = types.MatrixType(types.Float(), 4, 4)
        i4 = types.VectorType(types.Integer(), 4)

        r = types.ResolveBinaryExpressionType(op.Operation.MUL, m44, i4)

        assert r == types.VectorType(types.Float(), 4)

    def testMatrixVectorFailsOnIncompatibleSizes(self):
        with pytest.raises(Errors.CompileException):
            types.ResolveBinaryExpressionType(
                op.Operation.MUL,
                types.MatrixType(types.Float(), 4, 2),
                types.VectorType(types.Float(), 4))

    def testMatrixVectorFailsForNonMultiply(self):
        invalidOperations = [
            op.Operation.ADD,
            op.Operation.SUB,
            op.Operation.DIV
        ]

        for operation in invalidOperations:
            with pytest.raises(Errors.CompileException):
                types.ResolveBinaryExpressionType(
                    operation,
                    types.MatrixType(types.Float(), 4, 4),
                    types.VectorType(types.Float(), 2))

    def testComparisonOfVectorsIsBoolVector(self):
        f3 = types.VectorType(types.Float(), 3)

        r = types.ResolveBinaryExpressionType(op.Operation.CMP_LT, f3, f3)

        assert r == types.VectorType(types.Bool(), 3)

    def testScalarBroadcastsToVector(self):
        f2 = types.VectorType(types.Float(), 2)

        r = types.ResolveBinaryExpressionType(op.Operation.ADD,
                                              types.Integer(), f2)

        assert r == f2


class TestFieldCompatibility:
    def testBuiltinFieldTypes(self):
        assert types.IsFieldCompatible(types.Float())
        assert types.IsFieldCompatible(types.VectorType(types.Integer(), 3))
        assert types.IsFieldCompatible(
            types.MatrixType(types.Float(), 4, 4))

    def testBoolAndWideIntegersAreRejected(self):
        assert not types.IsFieldCompatible(types.Bool())
        assert not types.IsFieldCompatible(types.Integer(64))
        assert not types.IsFieldCompatible(
            types.VectorType(types.Bool(), 2))
