from collections import OrderedDict
from enum import Enum
from typing import List, Tuple

from psl import op, Errors


class Type:
    """Base class for all type calculations."""

    def GetName(self) -> str:
        raise NotImplementedError()

    def IsPrimitive(self) -> bool:
        return False

    def IsAggregate(self) -> bool:
        return False

    def IsTexture(self) -> bool:
        return False

    def NeedsResolve(self) -> bool:
        return False

    def GetComponentType(self) -> "Type":
        """For vector and matrix types, return the element type."""
        return self

    def __str__(self):
        return self.GetName()


class UnresolvedType(Type):
    """A type named in the source which has not been looked up yet. Texture
    types carry their component type name as well."""

    def __init__(self, name, componentName=None):
        self.__name = name
        self.__componentName = componentName

    def NeedsResolve(self):
        return True

    def GetName(self):
        return self.__name

    def GetComponentName(self):
        return self.__componentName

    def __repr__(self):
        return "UnresolvedType ({}, {})".format(
            repr(self.__name), repr(self.__componentName)
        )


class PrimitiveTypeKind(Enum):
    Scalar = 1
    Vector = 2
    Matrix = 3


class PrimitiveType(Type):
    """Primitive, or built-in type base class."""

    def IsPrimitive(self):
        return True

    def __eq__(self, other):
        """All primitive types have a valid __repr__ implementation, so just
        use that."""
        return repr(self) == repr(other)

    def __hash__(self):
        return hash(repr(self))

    def IsScalar(self):
        return self.GetKind() == PrimitiveTypeKind.Scalar

    def IsVector(self):
        return self.GetKind() == PrimitiveTypeKind.Vector

    def IsMatrix(self):
        return self.GetKind() == PrimitiveTypeKind.Matrix

    def GetKind(self):
        return None


class ScalarType(PrimitiveType):
    def __init__(self, bitWidth=32):
        self.__bitWidth = bitWidth

    def GetKind(self):
        return PrimitiveTypeKind.Scalar

    def GetBitWidth(self) -> int:
        return self.__bitWidth

    def GetByteSize(self) -> int:
        return self.__bitWidth // 8


class Float(ScalarType):
    def GetName(self):
        return "float"

    def __repr__(self):
        return "Float ()"


class Double(ScalarType):
    def __init__(self):
        super().__init__(64)

    def GetName(self):
        return "double"

    def __repr__(self):
        return "Double ()"


class Integer(ScalarType):
    def GetName(self):
        return "int" if self.GetBitWidth() == 32 else "int{}".format(
            self.GetBitWidth())

    def __repr__(self):
        return "Integer ({})".format(self.GetBitWidth())


class UnsignedInteger(ScalarType):
    def GetName(self):
        return "uint" if self.GetBitWidth() == 32 else "uint{}".format(
            self.GetBitWidth())

    def __repr__(self):
        return "UnsignedInteger ({})".format(self.GetBitWidth())


class Bool(ScalarType):
    def __init__(self):
        super().__init__(8)

    def GetName(self):
        return "bool"

    def __repr__(self):
        return "Bool ()"


class VectorType(PrimitiveType):
    def __init__(self, componentType: ScalarType, componentCount: int):
        assert componentCount > 0
        assert isinstance(componentType, ScalarType)
        self.__componentType = componentType
        self.__componentCount = componentCount

    def GetComponentType(self) -> ScalarType:
        return self.__componentType

    def GetSize(self):
        return (self.__componentCount,)

    def GetComponentCount(self):
        return self.__componentCount

    def GetName(self):
        return "{}{}".format(
            self.__componentType.GetName(), self.__componentCount
        )

    def __repr__(self):
        return "VectorType ({}, {})".format(
            repr(self.__componentType), self.__componentCount
        )

    def GetKind(self):
        return PrimitiveTypeKind.Vector

    def WithComponentType(self, componentType):
        """Return a copy of this type with a new component type."""
        return VectorType(componentType, self.__componentCount)


class MatrixType(PrimitiveType):
    def __init__(self, componentType: ScalarType, rows: int, columns: int):
        assert rows > 0 and columns > 0
        assert isinstance(componentType, ScalarType)
        self.__componentType = componentType
        self.__size = (rows, columns,)

    def GetRowCount(self) -> int:
        return self.__size[0]

    def GetColumnCount(self) -> int:
        return self.__size[1]

    def GetComponentType(self) -> ScalarType:
        return self.__componentType

    def GetSize(self) -> Tuple[int, int]:
        return self.__size

    def GetColumnType(self) -> VectorType:
        return VectorType(self.__componentType, self.GetRowCount())

    def GetName(self) -> str:
        return "{}{}x{}".format(
            self.__componentType.GetName(),
            self.GetRowCount(),
            self.GetColumnCount(),
        )

    def GetKind(self):
        return PrimitiveTypeKind.Matrix

    def __repr__(self):
        return "MatrixType ({}, {}, {})".format(
            repr(self.__componentType),
            self.GetRowCount(),
            self.GetColumnCount(),
        )

    def WithComponentType(self, componentType):
        """Return a copy of this type with a new component type."""
        return MatrixType(componentType, self.__size[0], self.__size[1])


class TextureType(Type):
    """A sampled texture, for instance ``texture2d<float>``. Sampling returns
    a four component vector of the component type."""

    def __init__(self, kind: str, componentType: ScalarType,
                 coordinateCount: int):
        self.__kind = kind
        self.__componentType = componentType
        self.__coordinateCount = coordinateCount

    def IsTexture(self):
        return True

    def GetKind(self) -> str:
        return self.__kind

    def GetComponentType(self) -> ScalarType:
        return self.__componentType

    def GetCoordinateType(self) -> Type:
        if self.__coordinateCount == 1:
            return Float()
        return VectorType(Float(), self.__coordinateCount)

    def GetSampleType(self) -> VectorType:
        return VectorType(self.__componentType, 4)

    def GetName(self):
        return "{}<{}>".format(self.__kind, self.__componentType.GetName())

    def __repr__(self):
        return "TextureType ({}, {})".format(
            repr(self.__kind), repr(self.__componentType)
        )


class EnumType(Type):
    """A 32-bit enumeration, used for compile-time configuration."""

    def __init__(self, name: str, values):
        self.__name = name
        self.__values = OrderedDict(values)

    def GetName(self):
        return self.__name

    def GetValues(self):
        return self.__values

    def __repr__(self):
        return "EnumType ({})".format(repr(self.__name))


class StructType(Type):
    def __init__(self, name: str, fields):
        self.__name = name
        self.__fields = OrderedDict(fields)

    def IsAggregate(self):
        return True

    def __repr__(self):
        return "StructType ({}, {})".format(
            repr(self.__name), repr(list(self.__fields.keys()))
        )

    def GetName(self):
        return self.__name

    def GetFields(self):
        return self.__fields

    def HasField(self, name) -> bool:
        return name in self.__fields

    def GetFieldType(self, name) -> Type:
        return self.__fields[name]


class Function(Type):
    """A builtin function. ``returnRule`` computes the return type from the
    argument types."""

    def __init__(self, name: str, argumentCount: int, returnRule):
        self.__name = name
        self.__argumentCount = argumentCount
        self.__returnRule = returnRule

    def GetName(self):
        return self.__name

    def GetArgumentCount(self):
        return self.__argumentCount

    def GetReturnType(self, argumentTypes: List[Type]) -> Type:
        return self.__returnRule(argumentTypes)

    def __repr__(self):
        return "Function ({})".format(repr(self.__name))


class Method(Type):
    """A builtin method, callable on a receiver of kind ``receiver``."""

    def __init__(self, receiver: str, name: str, argumentCount: int,
                 returnRule):
        self.__receiver = receiver
        self.__name = name
        self.__argumentCount = argumentCount
        self.__returnRule = returnRule

    def GetName(self):
        return self.__name

    def GetReceiver(self):
        return self.__receiver

    def GetArgumentCount(self):
        return self.__argumentCount

    def GetReturnType(self, receiverType: Type,
                      argumentTypes: List[Type]) -> Type:
        return self.__returnRule(receiverType, argumentTypes)

    def __repr__(self):
        return "Method ({}, {})".format(
            repr(self.__receiver), repr(self.__name))


def IsFieldCompatible(fieldType: Type) -> bool:
    """Check if a type may be stored in a record which crosses the host/GPU
    boundary: a builtin vector or matrix, a 32-bit integer or enumeration,
    or a 32/64-bit float."""
    if isinstance(fieldType, EnumType):
        return True
    if isinstance(fieldType, (VectorType, MatrixType)):
        return IsFieldCompatible(fieldType.GetComponentType())
    if isinstance(fieldType, (Float, Double)):
        return True
    if isinstance(fieldType, (Integer, UnsignedInteger)):
        return fieldType.GetBitWidth() == 32
    return False


def IsIntegral(t: Type) -> bool:
    return isinstance(t.GetComponentType(), (Integer, UnsignedInteger))


def _GetCommonScalarType(left, right):
    """Given two scalar types, get a common scalar type."""
    assert isinstance(left, ScalarType)
    assert isinstance(right, ScalarType)

    if isinstance(left, Double) or isinstance(right, Double):
        return Double()

    if isinstance(left, Float) or isinstance(right, Float):
        return Float()

    if isinstance(left, Integer) or isinstance(right, Integer):
        return Integer()

    if isinstance(left, Bool) and isinstance(right, Bool):
        return Bool()

    return UnsignedInteger()


def _GetCommonPrimitiveType(left, right):
    if isinstance(left, ScalarType) and isinstance(right, ScalarType):
        return _GetCommonScalarType(left, right)
    elif isinstance(left, VectorType) and isinstance(right, VectorType):
        if left.GetSize() != right.GetSize():
            Errors.ERROR_INCOMPATIBLE_TYPES.Raise(left, right)
        return VectorType(
            _GetCommonScalarType(
                left.GetComponentType(), right.GetComponentType()
            ),
            left.GetComponentCount(),
        )
    elif isinstance(left, MatrixType) and isinstance(right, MatrixType):
        if left.GetSize() != right.GetSize():
            Errors.ERROR_INCOMPATIBLE_TYPES.Raise(left, right)
        return MatrixType(
            _GetCommonScalarType(
                left.GetComponentType(), right.GetComponentType()
            ),
            left.GetRowCount(),
            left.GetColumnCount(),
        )
    Errors.ERROR_INCOMPATIBLE_TYPES.Raise(left, right)


def _GetRowsColumns(primitiveType: PrimitiveType):
    if primitiveType.IsMatrix():
        return primitiveType.GetSize()
    elif primitiveType.IsVector():
        return primitiveType.GetSize()[0], 1
    return 1, 1


def ResolveBinaryExpressionType(
    operation: op.Operation, left: Type, right: Type
) -> Type:
    """Get the type of an expression combining two elements,
    one of type left and one of type right. This performs the standard
    type promotion rules (``int->float``, ``float->double``).

    :param operation: The operation, must be a binary operation
    :param left: The left operand type
    :param right: The right operand type"""
    if not isinstance(left, PrimitiveType) or \
            not isinstance(right, PrimitiveType):
        Errors.ERROR_INVALID_BINARY_EXPRESSION_OPERATION.Raise(
            op.OpToStr(operation), left, right)

    if op.IsAssignment(operation):
        return left

    if op.IsComparison(operation) or operation in {
            op.Operation.LG_AND, op.Operation.LG_OR}:
        baseType = _GetCommonPrimitiveType(left, right)
        if isinstance(baseType, VectorType):
            return VectorType(Bool(), baseType.GetComponentCount())
        return Bool()

    # Multiply and divide have special rules -- matrices, vectors and scalars
    # can participate in those
    leftRightIsScalar = left.IsScalar() and right.IsScalar()
    if (
        operation in {op.Operation.MUL, op.Operation.DIV}
        and not leftRightIsScalar
    ):
        baseType = _GetCommonScalarType(
            left.GetComponentType(), right.GetComponentType()
        )

        if operation == op.Operation.DIV:
            # Vector / vector is component-wise, everything else needs a
            # scalar divisor
            if left.IsVector() and right.IsVector():
                return _GetCommonPrimitiveType(left, right)
            if not right.IsScalar():
                Errors.ERROR_INVALID_BINARY_EXPRESSION_OPERATION.Raise(
                    op.OpToStr(operation), left, right
                )
            return left.WithComponentType(baseType)

        # Only one of both can be scalar
        if left.IsScalar():
            return right.WithComponentType(baseType)
        elif right.IsScalar():
            return left.WithComponentType(baseType)

        # vector * vector is component-wise
        if left.IsVector() and right.IsVector():
            return _GetCommonPrimitiveType(left, right)

        leftShape = _GetRowsColumns(left)
        rightShape = _GetRowsColumns(right)

        if left.IsVector() and right.IsMatrix():
            # Row vector times matrix
            leftShape = (1, leftShape[0])
            if leftShape[1] != rightShape[0]:
                Errors.ERROR_INVALID_BINARY_EXPRESSION_OPERATION.Raise(
                    op.OpToStr(operation), left, right
                )
            return VectorType(baseType, rightShape[1])

        if leftShape[1] != rightShape[0]:
            Errors.ERROR_INVALID_BINARY_EXPRESSION_OPERATION.Raise(
                op.OpToStr(operation), left, right
            )

        # Matrix * Vector or Matrix * Matrix
        resultShape = (leftShape[0], rightShape[1])
        if resultShape[1] == 1:
            return VectorType(baseType, resultShape[0])
        return MatrixType(baseType, resultShape[0], resultShape[1])

    if left == right:
        return left

    # Scalars broadcast against vectors
    if left.IsScalar() and right.IsVector():
        return right.WithComponentType(
            _GetCommonScalarType(left, right.GetComponentType()))
    if left.IsVector() and right.IsScalar():
        return left.WithComponentType(
            _GetCommonScalarType(left.GetComponentType(), right))

    # make sure both are of the same type class (i.e. scalar, matrix or vector)
    if left.GetKind() != right.GetKind():
        Errors.ERROR_INCOMPATIBLE_TYPES.Raise(left, right)

    return _GetCommonPrimitiveType(left, right)


def ResolveUnaryExpressionType(operation: op.Operation, operand: Type) -> Type:
    if not isinstance(operand, PrimitiveType):
        Errors.ERROR_INCOMPATIBLE_TYPES.Raise(operand, op.OpToStr(operation))
    if operation == op.Operation.LG_NOT:
        if operand.IsVector():
            return VectorType(Bool(), operand.GetComponentCount())
        return Bool()
    return operand
