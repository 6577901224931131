import bisect
import itertools
from enum import Enum
from typing import List

from psl import op, types, Visitor


class SourceMapping:
    def __init__(self, source, sourceName="<unknown>"):
        self.__sourceName = sourceName

        self.__lineOffsets = []
        currentOffset = 0
        for line in source.split("\n"):
            self.__lineOffsets.append(currentOffset)
            currentOffset += len(line) + 1  # trailing \n

    def GetLineFromOffset(self, offset):
        return bisect.bisect_right(self.__lineOffsets, offset) - 1

    def GetLineStartOffset(self, line):
        return self.__lineOffsets[line]

    def GetSourceName(self):
        return self.__sourceName


class Location:
    def __init__(self, span, sourceMapping=None):
        assert span[1] >= span[0]
        self.__span = span
        self.__sourceMapping = sourceMapping

    def GetBegin(self):
        return self.__span[0]

    def GetEnd(self):
        return self.__span[1]

    @property
    def IsUnknown(self):
        return self.__span == (-1, -1)

    def __str__(self):
        if self.IsUnknown:
            return "<unknown>"

        if self.__sourceMapping:
            # Lines and columns are 0 based internally
            line = self.__sourceMapping.GetLineFromOffset(self.GetBegin())
            startOffset = self.__sourceMapping.GetLineStartOffset(line)
            return "{}:{}:{}".format(
                self.__sourceMapping.GetSourceName(),
                line + 1,
                self.GetBegin() - startOffset + 1,
            )
        else:
            return "[{},{})".format(self.GetBegin(), self.GetEnd())

    def __repr__(self):
        return "Location({})".format(repr(self.__span))


UNKNOWN_LOCATION = Location((-1, -1))


class Node(Visitor.Node):
    def __init__(self):
        self.__location = UNKNOWN_LOCATION

    def SetLocation(self, location):
        assert isinstance(location, Location)
        self.__location = location
        return self

    def GetLocation(self):
        return self.__location


class Module(Node):
    """A single translation module: structures, constants and pipelines."""

    def __init__(self):
        super().__init__()
        self.__types = []
        self.__constants = []
        self.__pipelines = []

    def _Traverse(self, function):
        function(self.__types)
        function(self.__constants)
        function(self.__pipelines)

    def AddType(self, decl):
        self.__types.append(decl)

    def AddConstant(self, decl):
        self.__constants.append(decl)

    def AddPipeline(self, pipeline):
        self.__pipelines.append(pipeline)

    def GetTypes(self):
        return self.__types

    def GetConstants(self):
        return self.__constants

    def GetPipelines(self):
        return self.__pipelines

    def __str__(self):
        return "Module ({} type(s), {} constant(s), {} pipeline(s))".format(
            len(self.__types), len(self.__constants), len(self.__pipelines)
        )


class Expression(Node):
    """Base class of all expressions.

    Expressions are treated as values: passes which change an expression
    build a new one using ``WithChildren`` instead of modifying it, so
    subtrees can be shared freely. ``GetKey`` returns a hashable value which
    is equal for structurally identical expressions."""

    def __init__(self, children=()):
        super().__init__()
        self.children = list(children)
        self.__type = None
        self.__builtinTypeId = None

    def GetType(self):
        return self.__type

    def SetType(self, exprType):
        assert not isinstance(exprType, types.UnresolvedType)
        self.__type = exprType

    def GetBuiltinTypeId(self):
        """Catalog id of the expression type, ``None`` if the type is not a
        builtin."""
        return self.__builtinTypeId

    def SetBuiltinTypeId(self, typeId):
        self.__builtinTypeId = typeId

    def _Traverse(self, function):
        function(self.children)

    def __iter__(self):
        return self.children.__iter__()

    def _Rebuild(self, children):
        raise NotImplementedError()

    def WithChildren(self, children):
        """Return a copy of this expression with new children. Type
        information and location are carried over."""
        result = self._Rebuild(list(children))
        result.SetLocation(self.GetLocation())
        if self.__type is not None:
            result.SetType(self.__type)
        result.SetBuiltinTypeId(self.__builtinTypeId)
        return result

    def GetKey(self):
        return (self.__class__.__name__,) + tuple(
            c.GetKey() for c in self.children)


class LiteralExpression(Expression):
    def __init__(self, value, literalType, spelling=None):
        super().__init__()
        self.value = value
        self.spelling = spelling
        self.SetType(literalType)

    def GetValue(self):
        return self.value

    def _Rebuild(self, children):
        return LiteralExpression(self.value, self.GetType(), self.spelling)

    def GetKey(self):
        return ("Literal", repr(self.value), self.GetType().GetName(),)

    def __str__(self):
        if self.spelling is not None:
            return self.spelling
        return str(self.value)


class PrimaryExpression(Expression):
    """A name which has not been resolved yet."""

    def __init__(self, identifier):
        super().__init__()
        self.identifier = identifier

    def GetName(self):
        return self.identifier

    def _Rebuild(self, children):
        return PrimaryExpression(self.identifier)

    def GetKey(self):
        return ("Primary", self.identifier,)

    def __str__(self):
        return self.identifier


class ParameterExpression(Expression):
    """Reference to a pipeline parameter."""

    def __init__(self, parameter):
        super().__init__()
        self.parameter = parameter

    def GetParameter(self):
        return self.parameter

    def GetName(self):
        return self.parameter.GetName()

    def _Rebuild(self, children):
        return ParameterExpression(self.parameter)

    def GetKey(self):
        return ("Parameter", self.parameter.GetName(),)

    def __str__(self):
        return self.parameter.GetName()


class VariableExpression(Expression):
    """Reference to a local variable, identified by its declaration."""

    def __init__(self, declaration):
        super().__init__()
        self.declaration = declaration

    def GetDeclaration(self):
        return self.declaration

    def GetName(self):
        return self.declaration.GetName()

    def _Rebuild(self, children):
        return VariableExpression(self.declaration)

    def GetKey(self):
        return ("Variable", self.declaration.GetSerial(),)

    def __str__(self):
        return self.declaration.GetName()


class ConstantExpression(Expression):
    """Reference to a module level constant."""

    def __init__(self, declaration):
        super().__init__()
        self.declaration = declaration

    def GetDeclaration(self):
        return self.declaration

    def GetName(self):
        return self.declaration.GetName()

    def _Rebuild(self, children):
        return ConstantExpression(self.declaration)

    def GetKey(self):
        return ("Constant", self.declaration.GetName(),)

    def __str__(self):
        return self.declaration.GetName()


class MemberAccessExpression(Expression):
    """Expression of the form 'expr.member'. A member access on a vector is
    a swizzle."""

    def __init__(self, parent, member: str, isSwizzle=False):
        super().__init__([parent])
        self.member = member
        self.isSwizzle = isSwizzle

    def GetParent(self):
        return self.children[0]

    def GetMember(self) -> str:
        return self.member

    def SetSwizzle(self, isSwizzle: bool) -> None:
        self.isSwizzle = isSwizzle

    def _Rebuild(self, children):
        return MemberAccessExpression(children[0], self.member,
                                      self.isSwizzle)

    def GetKey(self):
        return ("Member", self.GetParent().GetKey(), self.member,)

    def __str__(self):
        return str(self.GetParent()) + "." + self.member


class ConstructExpression(Expression):
    """Expression of the form type (expr, ...)."""

    def __init__(self, targetType, expressions):
        super().__init__(expressions)
        self.targetType = targetType
        if not targetType.NeedsResolve():
            self.SetType(targetType)

    def GetArguments(self):
        return self.children

    def _Rebuild(self, children):
        return ConstructExpression(self.targetType, children)

    def GetKey(self):
        return ("Construct", self.targetType.GetName(),) + tuple(
            c.GetKey() for c in self.children)

    def __str__(self):
        return "{}({})".format(
            self.targetType.GetName(),
            ", ".join([str(expr) for expr in self.children]),
        )


class CallExpression(Expression):
    """A function call of the form ID ([expr], ...). The parser produces
    calls for constructs as well; they are told apart during typing."""

    def __init__(self, function, expressions: List[Expression]):
        super().__init__(expressions)
        self.function = function
        self.builtinFunctionId = None

    def GetArguments(self):
        return self.children

    def GetFunction(self):
        return self.function

    def GetName(self):
        return self.function.GetName()

    def _Rebuild(self, children):
        result = CallExpression(self.function, children)
        result.builtinFunctionId = self.builtinFunctionId
        return result

    def GetKey(self):
        return ("Call", self.function.GetName(),) + tuple(
            c.GetKey() for c in self.children)

    def __str__(self):
        return "{}({})".format(
            self.function.GetName(),
            ", ".join([str(expr) for expr in self.children]))


class MethodCallExpression(Expression):
    """A method call 'receiver.name (args)'. The receiver is the first
    child."""

    def __init__(self, receiver, method, expressions: List[Expression]):
        super().__init__([receiver] + list(expressions))
        self.method = method
        self.builtinMethodId = None
        self.samplerIndex = None

    def GetReceiver(self):
        return self.children[0]

    def GetArguments(self):
        return self.children[1:]

    def GetMethod(self):
        return self.method

    def GetName(self):
        return self.method.GetName()

    def _Rebuild(self, children):
        result = MethodCallExpression(children[0], self.method, children[1:])
        result.builtinMethodId = self.builtinMethodId
        result.samplerIndex = self.samplerIndex
        return result

    def WithSampler(self, samplerIndex):
        result = self.WithChildren(self.children)
        result.samplerIndex = samplerIndex
        return result

    def GetKey(self):
        return ("Method", self.method.GetName(), self.samplerIndex,) + tuple(
            c.GetKey() for c in self.children)

    def __str__(self):
        return "{}.{}({})".format(
            self.GetReceiver(), self.method.GetName(),
            ", ".join([str(expr) for expr in self.GetArguments()]))


class UnaryExpression(Expression):
    def __init__(self, operation, expr):
        super().__init__([expr])
        self.op = operation

    def GetOperation(self):
        return self.op

    def GetExpression(self):
        return self.children[0]

    def _Rebuild(self, children):
        return UnaryExpression(self.op, children[0])

    def GetKey(self):
        return ("Unary", self.op, self.children[0].GetKey(),)

    def __str__(self):
        return "{}{}".format(op.OpToStr(self.op), self.children[0])


class BinaryExpression(Expression):
    def __init__(self, operation, left, right):
        super().__init__([left, right])
        self.op = operation

    def GetLeft(self):
        return self.children[0]

    def GetRight(self):
        return self.children[1]

    def GetOperation(self):
        return self.op

    def _Rebuild(self, children):
        return BinaryExpression(self.op, children[0], children[1])

    def GetKey(self):
        return ("Binary", self.op, self.children[0].GetKey(),
                self.children[1].GetKey(),)

    def __str__(self):
        r = ""
        if isinstance(self.GetLeft(), BinaryExpression):
            r += "(" + str(self.GetLeft()) + ")"
        else:
            r += str(self.GetLeft())

        r += " " + op.OpToStr(self.op) + " "

        if isinstance(self.GetRight(), BinaryExpression):
            r += "(" + str(self.GetRight()) + ")"
        else:
            r += str(self.GetRight())

        return r


class AssignmentExpression(BinaryExpression):
    def __init__(self, left, right, *, operation=op.Operation.ASSIGN):
        super().__init__(operation, left, right)

    def _Rebuild(self, children):
        return AssignmentExpression(children[0], children[1],
                                    operation=self.op)


class ConditionalExpression(Expression):
    """Expression of the form 'condition ? a : b'."""

    def __init__(self, condition, trueExpression, falseExpression):
        super().__init__([condition, trueExpression, falseExpression])

    def GetCondition(self):
        return self.children[0]

    def GetTrueExpression(self):
        return self.children[1]

    def GetFalseExpression(self):
        return self.children[2]

    def _Rebuild(self, children):
        return ConditionalExpression(*children)

    def __str__(self):
        return "{} ? {} : {}".format(*self.children)


class InterfaceFieldExpression(Expression):
    """Read or write of a field of a synthesized stage interface record.
    Producers write through the outbound record, consumers read from the
    inbound one."""

    def __init__(self, record, field, isProducer: bool):
        super().__init__()
        self.record = record
        self.field = field
        self.isProducer = isProducer
        self.SetType(field.GetType())
        self.SetBuiltinTypeId(field.GetBuiltinTypeId())

    def GetRecord(self):
        return self.record

    def GetField(self):
        return self.field

    def IsProducer(self):
        return self.isProducer

    def _Rebuild(self, children):
        return InterfaceFieldExpression(self.record, self.field,
                                        self.isProducer)

    def GetKey(self):
        return ("Field", self.record.GetName(), self.field.GetName(),
                self.isProducer,)

    def __str__(self):
        if self.isProducer:
            return "{}.{}".format(self.record.GetProducerName(),
                                  self.field.GetName())
        return "{}.{}".format(self.record.GetConsumerName(),
                              self.field.GetName())


class VariableDeclaration(Node):
    """A variable, with an optional initializer. The declaration object is
    the identity of the variable; references point at it."""

    __serials = itertools.count()

    def __init__(self, variableType, name, initExpression=None):
        super().__init__()
        self.__name = name
        self.__initializer = initExpression
        self.__type = variableType
        self.__serial = next(VariableDeclaration.__serials)

    def ResolveType(self, resolvedType):
        self.__type = resolvedType

    def _Traverse(self, function):
        function(self.__initializer)

    def __str__(self):
        result = "{} {}".format(self.__type.GetName(), self.__name)
        if self.HasInitializerExpression():
            result += " = " + str(self.__initializer)
        return result

    def GetType(self):
        return self.__type

    def GetName(self):
        return self.__name

    def GetSerial(self):
        return self.__serial

    def HasInitializerExpression(self):
        return self.__initializer is not None

    def GetInitializerExpression(self):
        return self.__initializer

    def SetInitializerExpression(self, expr):
        self.__initializer = expr


class StructureDefinition(Node):
    def __init__(self, name, fields):
        super().__init__()
        self.__name = name
        self.__fields = fields
        self.__type = types.UnresolvedType(name)

    def _Traverse(self, function):
        function(self.__fields)

    def GetName(self):
        return self.__name

    def GetFields(self) -> List[VariableDeclaration]:
        return self.__fields

    def SetType(self, structType):
        assert isinstance(structType, types.StructType)
        self.__type = structType

    def GetType(self):
        return self.__type

    def __str__(self):
        return "struct {0} ({1} field(s))".format(
            self.GetName(), len(self.GetFields())
        )


class ConstantDeclaration(VariableDeclaration):
    """A module level constant, for instance a sampler configuration."""

    def __str__(self):
        return "const " + super().__str__()


class ParameterRole(Enum):
    Uniform = 1
    VertexBuffer = 2
    InstanceBuffer = 3
    VertexTexture = 4
    FragmentTexture = 5
    Position = 6
    ColorTarget = 7


class Parameter(Node):
    """A pipeline parameter with its role. ``slot`` is the buffer, texture
    or color target index where the role takes one."""

    def __init__(self, role: ParameterRole, parameterType, name, slot=None):
        super().__init__()
        self.__role = role
        self.__type = parameterType
        self.__name = name
        self.__slot = slot

    def ResolveType(self, resolvedType):
        self.__type = resolvedType

    def GetRole(self) -> ParameterRole:
        return self.__role

    def GetType(self):
        return self.__type

    def GetName(self):
        return self.__name

    def GetSlot(self):
        return self.__slot

    def __str__(self):
        if self.__slot is not None:
            return "{}({}) {} {}".format(self.__role.name, self.__slot,
                                         self.__type.GetName(), self.__name)
        return "{} {} {}".format(self.__role.name, self.__type.GetName(),
                                 self.__name)


class Pipeline(Node):
    def __init__(self, name, parameters, body):
        super().__init__()
        self.__name = name
        self.__parameters = parameters
        self.__body = body

    def _Traverse(self, function):
        function(self.__parameters)
        function(self.__body)

    def GetName(self):
        return self.__name

    def GetParameters(self) -> List[Parameter]:
        return self.__parameters

    def GetParameter(self, name):
        for parameter in self.__parameters:
            if parameter.GetName() == name:
                return parameter
        return None

    def GetBody(self):
        return self.__body

    def __str__(self):
        return "{} ({} parameter(s))".format(
            self.__name, len(self.__parameters))


class Statement(Node):
    def GetKindName(self):
        """Name used in diagnostics."""
        return self.__class__.__name__.replace("Statement", "").lower()


class FlowStatement(Statement):
    pass


class EmptyStatement(Statement):
    pass


class ExpressionStatement(Statement):
    def __init__(self, expr):
        super().__init__()
        self.__expression = expr

    def _Traverse(self, function):
        function(self.__expression)

    def GetExpression(self):
        return self.__expression

    def SetExpression(self, expr):
        self.__expression = expr

    def __str__(self):
        return str(self.__expression)


class CompoundStatement(Statement):
    """Compound statement consisting of zero or more statements.
    Compound statements also create a new visibility block."""

    def __init__(self, stmts):
        super().__init__()
        self.__statements = stmts

    def GetStatements(self):
        return self.__statements

    def _Traverse(self, function):
        function(self.__statements)

    def __len__(self):
        return len(self.__statements)

    def __iter__(self):
        """Iterate over the statements."""
        return self.__statements.__iter__()

    def __str__(self):
        return "{0} statement(s)".format(len(self))


class DeclarationStatement(Statement):
    def __init__(self, declaration: VariableDeclaration):
        super().__init__()
        self.declaration = declaration

    def GetDeclaration(self) -> VariableDeclaration:
        return self.declaration

    def _Traverse(self, function):
        function(self.declaration)

    def __str__(self):
        return str(self.declaration)


class IfStatement(FlowStatement):
    def __init__(self, cond, truePath, elsePath=None):
        super().__init__()
        self.__condition = cond
        self.__trueBlock = truePath
        self.__elseBlock = elsePath

    def _Traverse(self, function):
        function(self.__condition)
        function(self.__trueBlock)
        function(self.__elseBlock)

    def GetCondition(self):
        return self.__condition

    def SetCondition(self, cond):
        self.__condition = cond

    def GetTruePath(self):
        return self.__trueBlock

    def GetElsePath(self):
        return self.__elseBlock

    def HasElsePath(self):
        return self.__elseBlock is not None

    def __str__(self):
        return "if ({})".format(self.__condition)


class ReturnStatement(FlowStatement):
    def __init__(self, expression=None):
        super().__init__()
        self.__expression = expression

    def _Traverse(self, function):
        function(self.__expression)

    def GetExpression(self):
        return self.__expression

    def __str__(self):
        if self.__expression is None:
            return "return"
        return "return {}".format(self.__expression)


class ContinueStatement(FlowStatement):
    pass


class BreakStatement(FlowStatement):
    pass


class ForStatement(FlowStatement):
    def __init__(self, init, cond, increment, body):
        super().__init__()
        self.__initializer = init
        self.__condition = cond
        self.__next = increment
        self.__body = body

    def GetInitialization(self):
        return self.__initializer

    def GetCondition(self):
        return self.__condition

    def GetNext(self):
        return self.__next

    def GetBody(self):
        return self.__body

    def _Traverse(self, function):
        function(self.__initializer)
        function(self.__condition)
        function(self.__next)
        function(self.__body)


class DoStatement(FlowStatement):
    def __init__(self, cond, body):
        super().__init__()
        self.__condition = cond
        self.__body = body

    def GetCondition(self):
        return self.__condition

    def GetBody(self):
        return self.__body

    def _Traverse(self, function):
        function(self.__body)
        function(self.__condition)


class WhileStatement(FlowStatement):
    def __init__(self, cond, body):
        super().__init__()
        self.__condition = cond
        self.__body = body

    def GetCondition(self):
        return self.__condition

    def GetBody(self):
        return self.__body

    def _Traverse(self, function):
        function(self.__condition)
        function(self.__body)
