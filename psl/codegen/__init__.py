'''Stage source generation.

A ``CodeGenerator`` prints one stage of a split program. The GLSL and HLSL
generators share the ``ExpressionPrinter``; what differs between them in
expressions is data (the catalog spelling column and a ``Syntax`` table),
the declarations around the stage body are printed by each generator.'''
import collections

from psl import ast, op, types, Errors, Visitor
from psl.Builtins import Family
from psl.Targets import Target, GetFamily
from psl.stage import Stage

# sample: format string with texture, function, sampler and coordinates
# matrixMultiply: format string for products involving a matrix, or None
# conversions: (target type, source type) spelling pairs mapped to helpers
Syntax = collections.namedtuple(
    'Syntax', ['sample', 'matrixMultiply', 'conversions'])


class CodeGenerator:
    def GetTarget(self) -> Target:
        raise NotImplementedError()

    def Generate(self, graph, stage: Stage) -> str:
        '''Return the source of ``stage``, which must be active in
        ``graph``.'''
        raise NotImplementedError()


class SourceWriter:
    def __init__(self, indent='  '):
        self.__lines = []
        self.__level = 0
        self.__indent = indent

    def Print(self, line=''):
        if line:
            self.__lines.append(self.__indent * self.__level + line)
        else:
            self.__lines.append('')

    def In(self):
        self.__level += 1

    def Out(self):
        assert self.__level > 0
        self.__level -= 1

    def GetSource(self) -> str:
        return '\n'.join(self.__lines) + '\n'


class References:
    '''How parameters are spelled inside one stage body.'''
    def __init__(self, attributePrefix=''):
        self.__parameters = {}
        self.__attributePrefix = attributePrefix

    def SetParameter(self, parameter, text):
        self.__parameters[parameter.GetName()] = text

    def GetParameter(self, parameter):
        text = self.__parameters.get(parameter.GetName())
        if text is None:
            Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
                "parameter '{}' is not available in this stage".format(
                    parameter.GetName()))
        return text

    def GetAttribute(self, parameter, field):
        return '{}{}_{}'.format(self.__attributePrefix, parameter.GetName(),
                                field)


def GetTypeSpelling(catalog, t, family: Family) -> str:
    if isinstance(t, types.EnumType):
        return 'uint'
    typeId = catalog.IdentifyType(t)
    if typeId is None:
        Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
            "type '{}' has no builtin spelling".format(t))
    return catalog.GetTypeSpelling(typeId, family)


def IsFlat(t) -> bool:
    '''Integer values must not be interpolated between stages.'''
    return isinstance(t, types.EnumType) or types.IsIntegral(t)


def FormatLiteral(expr) -> str:
    value = expr.GetValue()
    literalType = expr.GetType()
    if isinstance(literalType, types.Bool):
        return 'true' if value else 'false'
    if isinstance(literalType, (types.UnsignedInteger, types.EnumType,)):
        return '{}u'.format(value)
    if isinstance(literalType, (types.Float, types.Double,)):
        text = repr(float(value))
        if '.' not in text and 'e' not in text:
            text += '.0'
        return text
    return str(value)


def GetUniformBinding(graph, stage: Stage) -> int:
    '''Uniform records are bound in stage order, one binding per active
    stage.'''
    return graph.GetActiveStages().index(stage)


def GetAttributeDeclarations(program):
    '''Vertex attributes as declared in source. Matrices are declared once,
    at the location of their first column.'''
    result = []
    for attribute in program.GetVertexAttributes():
        if isinstance(attribute.type, types.MatrixType) and \
                attribute.locationCount != attribute.type.GetColumnCount():
            continue
        result.append(attribute)
    return result


def GetStageTextures(program, stage: Stage):
    '''``(binding, texture)`` for all textures used by ``stage``. Bindings
    are indices into the program's texture table.'''
    return [(i, texture,) for i, texture in enumerate(program.GetTextures())
            if texture.stage == stage]


def GetStageSamplers(program, stage: Stage):
    return [(i, sampler,) for i, sampler in enumerate(program.GetSamplers())
            if sampler.GetStageMask().Contains(stage)]


class ExpressionPrinter(Visitor.Visitor):
    '''Formats statements and expressions of a stage body.'''
    def __init__(self, catalog, family: Family, syntax: Syntax,
                 references: References):
        super().__init__()
        self.__catalog = catalog
        self.__family = family
        self.__syntax = syntax
        self.__references = references

    def Format(self, node) -> str:
        return self.v_Generic(node)

    def __Type(self, t):
        return GetTypeSpelling(self.__catalog, t, self.__family)

    def __Operand(self, expr):
        text = self.Format(expr)
        if isinstance(expr, (ast.BinaryExpression, ast.ConditionalExpression,
                             ast.UnaryExpression,)):
            return '(' + text + ')'
        return text

    def __Arguments(self, expressions):
        return ', '.join([self.Format(e) for e in expressions])

    def __IsMatrix(self, expr):
        typeId = expr.GetBuiltinTypeId()
        return typeId is not None and self.__catalog.IsMatrixType(typeId)

    def v_DeclarationStatement(self, stmt, ctx=None):
        declaration = stmt.GetDeclaration()
        return '{} {} = {};'.format(
            self.__Type(declaration.GetType()), declaration.GetName(),
            self.Format(declaration.GetInitializerExpression()))

    def v_ExpressionStatement(self, stmt, ctx=None):
        return self.Format(stmt.GetExpression()) + ';'

    def v_LiteralExpression(self, expr, ctx=None):
        return FormatLiteral(expr)

    def v_VariableExpression(self, expr, ctx=None):
        return expr.GetName()

    def v_ParameterExpression(self, expr, ctx=None):
        return self.__references.GetParameter(expr.GetParameter())

    def v_InterfaceFieldExpression(self, expr, ctx=None):
        record = expr.GetRecord()
        fieldName = expr.GetField().GetName()
        # Uniform blocks are not instanced, their fields are global names
        if record.GetFromStage() == Stage.Host:
            return fieldName
        if expr.IsProducer():
            return '{}.{}'.format(record.GetProducerName(), fieldName)
        return '{}.{}'.format(record.GetConsumerName(), fieldName)

    def v_MemberAccessExpression(self, expr, ctx=None):
        parent = expr.GetParent()
        if isinstance(parent, ast.ParameterExpression) and \
                isinstance(parent.GetType(), types.StructType):
            return self.__references.GetAttribute(parent.GetParameter(),
                                                  expr.GetMember())
        if isinstance(parent, ast.LiteralExpression):
            return '({}).{}'.format(self.Format(parent), expr.GetMember())
        return '{}.{}'.format(self.__Operand(parent), expr.GetMember())

    def v_ConstructExpression(self, expr, ctx=None):
        arguments = expr.GetArguments()
        spelling = self.__Type(expr.GetType())
        if len(arguments) == 1:
            helper = self.__syntax.conversions.get(
                (spelling, self.__Type(arguments[0].GetType()),))
            if helper is not None:
                return '{}({})'.format(helper, self.Format(arguments[0]))
        return '{}({})'.format(spelling, self.__Arguments(arguments))

    def v_UnaryExpression(self, expr, ctx=None):
        return '{}{}'.format(op.OpToStr(expr.GetOperation()),
                             self.__Operand(expr.GetExpression()))

    def v_BinaryExpression(self, expr, ctx=None):
        left = expr.GetLeft()
        right = expr.GetRight()
        if expr.GetOperation() == op.Operation.MUL and \
                self.__syntax.matrixMultiply is not None and \
                (self.__IsMatrix(left) or self.__IsMatrix(right)):
            return self.__syntax.matrixMultiply.format(self.Format(left),
                                                       self.Format(right))
        return '{} {} {}'.format(self.__Operand(left),
                                 op.OpToStr(expr.GetOperation()),
                                 self.__Operand(right))

    def v_AssignmentExpression(self, expr, ctx=None):
        return '{} {} {}'.format(self.Format(expr.GetLeft()),
                                 op.OpToStr(expr.GetOperation()),
                                 self.Format(expr.GetRight()))

    def v_ConditionalExpression(self, expr, ctx=None):
        return '{} ? {} : {}'.format(*[self.__Operand(e) for e in expr])

    def v_CallExpression(self, expr, ctx=None):
        return '{}({})'.format(
            self.__catalog.GetFunctionSpelling(expr.builtinFunctionId,
                                               self.__family),
            self.__Arguments(expr.GetArguments()))

    def v_MethodCallExpression(self, expr, ctx=None):
        methodId = expr.builtinMethodId
        spelling = self.__catalog.GetMethodSpelling(methodId, self.__family)
        receiver = expr.GetReceiver()

        if self.__catalog.IsSampleMethod(methodId):
            coordinates = expr.GetArguments()[0]
            return self.__syntax.sample.format(
                texture=self.Format(receiver), function=spelling,
                sampler=expr.samplerIndex,
                coordinates=self.Format(coordinates))

        if self.__catalog.IsSwizzleMethod(methodId):
            return '{}.{}'.format(self.__Operand(receiver), spelling)

        Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
            "no lowering for method '{}'".format(expr.GetName()),
            location=expr.GetLocation())

    def v_Expression(self, expr, ctx=None):
        Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
            "cannot print '{}' in a stage body".format(expr),
            location=expr.GetLocation())


def GetGenerator(target: Target, catalog) -> CodeGenerator:
    from psl.codegen import Glsl, Hlsl

    if GetFamily(target) == Family.GLSL:
        return Glsl.GlslGenerator(catalog)
    return Hlsl.HlslGenerator(catalog, target)
