from collections import OrderedDict
from typing import List
from psl import ast, types, Errors, Visitor


def ComputeSwizzleType(inType, mask):
    '''Compute the resulting type of a swizzle operation.
    @param inType: Must be a PrimitiveType
    @param mask: A swizzle mask, validated separately
    '''
    assert isinstance(inType, types.Type)
    outComponentCount = len(mask)

    swizzleType = inType.GetComponentType()

    if outComponentCount == 1:
        return swizzleType
    else:
        return types.VectorType(swizzleType, outComponentCount)


class Scope:
    '''Maps names to declarations: variable declarations, parameters and
    constants.'''
    def __init__(self, parent=None):
        self.__symbols = dict()
        self.__parent = parent

    def Register(self, name, declaration):
        self.__symbols[name] = declaration

    def Get(self, name):
        if name in self.__symbols:
            return self.__symbols[name]
        if self.__parent is not None:
            return self.__parent.Get(name)
        return None


class ComputeTypeVisitor(Visitor.DefaultVisitor):
    '''Resolves names and computes the type of every expression.

    Primary expressions are replaced by references to parameters, variables
    and constants, calls of type names become constructs, and every
    expression gets its canonical type plus the builtin type id from the
    catalog.'''
    def GetContext(self) -> List[Scope]:
        return [Scope()]

    def __init__(self, universe, catalog):
        super().__init__()
        self.ok = True
        self.__universe = universe
        self.__catalog = catalog
        self.__structures = OrderedDict()

        def OnError():
            self.ok = False
        self.__onError = OnError

    def __ResolveType(self, t, location=None):
        if not t.NeedsResolve():
            return self.__universe.GetCanonicalType(t)

        if t.GetComponentName() is not None:
            name = '{}<{}>'.format(t.GetName(), t.GetComponentName())
        else:
            name = t.GetName()

        result = self.__universe.GetType(name)
        if result is None:
            result = self.__structures.get(name)
        if result is None:
            Errors.ERROR_UNKNOWN_TYPE.Raise(name, location=location)
        return result

    def __SetType(self, expr, t):
        t = self.__universe.GetCanonicalType(t)
        expr.SetType(t)
        expr.SetBuiltinTypeId(self.__catalog.IdentifyType(t))
        return expr

    def _ProcessExpression(self, expr, scope):
        '''Return the typed replacement of ``expr``.'''
        assert isinstance(expr, ast.Expression), \
            'Expression {1} has type {0} which is not an expression type'.format(
                type(expr), expr)

        location = expr.GetLocation()

        if isinstance(expr, ast.LiteralExpression):
            return self.__SetType(expr, expr.GetType())

        if isinstance(expr, ast.PrimaryExpression):
            return self.__ResolveName(expr, scope)

        if isinstance(expr, ast.MemberAccessExpression):
            parent = self._ProcessExpression(expr.GetParent(), scope)
            parentType = parent.GetType()
            result = ast.MemberAccessExpression(parent, expr.GetMember())
            result.SetLocation(location)
            if parentType.IsPrimitive() and (
                    parentType.IsVector() or parentType.IsScalar()):
                # We allow swizzling of vector and scalar types
                result.SetSwizzle(True)
                return self.__SetType(
                    result, ComputeSwizzleType(parentType, expr.GetMember()))
            elif isinstance(parentType, types.StructType):
                if not parentType.HasField(expr.GetMember()):
                    Errors.ERROR_UNKNOWN_MEMBER.Raise(
                        parentType.GetName(), expr.GetMember(),
                        location=location)
                return self.__SetType(
                    result, parentType.GetFieldType(expr.GetMember()))
            Errors.ERROR_CANNOT_SWIZZLE_TYPE.Raise(parentType,
                                                   location=location)

        children = [self._ProcessExpression(c, scope) for c in expr]
        childTypes = [c.GetType() for c in children]

        if isinstance(expr, ast.CallExpression):
            return self.__ResolveCall(expr, children, childTypes)
        elif isinstance(expr, ast.ConstructExpression):
            targetType = self.__ResolveType(expr.targetType, location)
            result = ast.ConstructExpression(targetType, children)
            result.SetLocation(location)
            return self.__SetType(result, targetType)
        elif isinstance(expr, ast.MethodCallExpression):
            return self.__ResolveMethodCall(expr, children, childTypes)
        elif isinstance(expr, ast.AssignmentExpression):
            result = expr.WithChildren(children)
            return self.__SetType(result, types.ResolveBinaryExpressionType(
                expr.GetOperation(), childTypes[0], childTypes[1]))
        elif isinstance(expr, ast.BinaryExpression):
            result = expr.WithChildren(children)
            return self.__SetType(result, types.ResolveBinaryExpressionType(
                expr.GetOperation(), childTypes[0], childTypes[1]))
        elif isinstance(expr, ast.UnaryExpression):
            result = expr.WithChildren(children)
            return self.__SetType(result, types.ResolveUnaryExpressionType(
                expr.GetOperation(), childTypes[0]))
        elif isinstance(expr, ast.ConditionalExpression):
            result = expr.WithChildren(children)
            return self.__SetType(result, childTypes[1])

        Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
            'cannot type expression {}'.format(expr), location=location)

    def __ResolveName(self, expr, scope):
        name = expr.GetName()
        declaration = scope.Get(name)

        if isinstance(declaration, ast.ConstantDeclaration):
            result = ast.ConstantExpression(declaration)
        elif isinstance(declaration, ast.VariableDeclaration):
            result = ast.VariableExpression(declaration)
        elif isinstance(declaration, ast.Parameter):
            result = ast.ParameterExpression(declaration)
        else:
            enumType = self.__universe.GetConstant(name)
            if enumType is None:
                Errors.ERROR_UNKNOWN_SYMBOL.Raise(
                    name, location=expr.GetLocation())
            result = ast.LiteralExpression(enumType.GetValues()[name],
                                           enumType, name)
            result.SetLocation(expr.GetLocation())
            return self.__SetType(result, enumType)

        result.SetLocation(expr.GetLocation())
        return self.__SetType(result, declaration.GetType())

    def __ResolveCall(self, expr, children, childTypes):
        location = expr.GetLocation()
        name = expr.GetName()

        # ID (args) is a construct if ID names a type
        targetType = self.__universe.GetType(name)
        if targetType is None:
            targetType = self.__structures.get(name)
        if targetType is not None:
            result = ast.ConstructExpression(targetType, children)
            result.SetLocation(location)
            return self.__SetType(result, targetType)

        function = self.__universe.GetFunction(name)
        if function is None:
            Errors.ERROR_UNKNOWN_SYMBOL.Raise(name, location=location)
        if function.GetArgumentCount() != len(children):
            Errors.ERROR_WRONG_ARGUMENT_COUNT.Raise(
                name, function.GetArgumentCount(), len(children),
                location=location)

        result = ast.CallExpression(function, children)
        result.builtinFunctionId = self.__catalog.IdentifyFunction(function)
        result.SetLocation(location)
        return self.__SetType(result, function.GetReturnType(childTypes))

    def __ResolveMethodCall(self, expr, children, childTypes):
        location = expr.GetLocation()
        name = expr.GetName()
        receiverType = childTypes[0]

        if isinstance(receiverType, types.TextureType):
            method = self.__universe.GetMethod(receiverType.GetKind(), name)
        elif receiverType.IsPrimitive() and not receiverType.IsMatrix():
            method = self.__universe.GetMethod('vector', name)
        else:
            method = None

        if method is None:
            Errors.ERROR_UNKNOWN_MEMBER.Raise(receiverType.GetName(), name,
                                              location=location)
        if method.GetArgumentCount() != len(children) - 1:
            Errors.ERROR_WRONG_ARGUMENT_COUNT.Raise(
                name, method.GetArgumentCount(), len(children) - 1,
                location=location)

        result = ast.MethodCallExpression(children[0], method, children[1:])
        result.builtinMethodId = self.__catalog.IdentifyMethod(method)
        result.SetLocation(location)
        return self.__SetType(
            result, method.GetReturnType(receiverType, childTypes[1:]))

    def v_StructureDefinition(self, decl, ctx):
        assert isinstance(decl, ast.StructureDefinition)

        fields = OrderedDict()
        for field in decl.GetFields():
            if field.GetName() in fields:
                Errors.ERROR_DUPLICATE_FIELD.Raise(
                    decl.GetName(), field.GetName(),
                    location=field.GetLocation())
            field.ResolveType(self.__ResolveType(field.GetType(),
                                                 field.GetLocation()))
            fields[field.GetName()] = field.GetType()
        structType = types.StructType(decl.GetName(), fields)
        self.__structures[decl.GetName()] = structType
        decl.SetType(structType)

    def v_CompoundStatement(self, stmt, ctx):
        ctx.append(Scope(ctx[-1]))
        stmt.AcceptVisitor(self, ctx)
        ctx.pop()

    def v_IfStatement(self, stmt, ctx):
        stmt.SetCondition(self._ProcessExpression(stmt.GetCondition(),
                                                  ctx[-1]))
        ctx.append(Scope(ctx[-1]))
        self.v_Visit(stmt.GetTruePath(), ctx)
        if stmt.HasElsePath():
            self.v_Visit(stmt.GetElsePath(), ctx)
        ctx.pop()

    def v_ExpressionStatement(self, stmt, ctx):
        stmt.SetExpression(self._ProcessExpression(stmt.GetExpression(),
                                                   ctx[-1]))

    def v_FlowStatement(self, stmt, ctx):
        # Loops and jumps are rejected later, when the pipeline is split
        # into stages. Their bodies still get types for debug output.
        ctx.append(Scope(ctx[-1]))
        for child in stmt.GetChildren():
            if isinstance(child, (ast.Statement, ast.VariableDeclaration)):
                self.v_Visit(child, ctx)
        ctx.pop()

    def v_VariableDeclaration(self, decl, ctx):
        assert isinstance(decl, ast.VariableDeclaration)

        scope = ctx[-1]
        decl.ResolveType(self.__ResolveType(decl.GetType(),
                                            decl.GetLocation()))
        if decl.HasInitializerExpression():
            decl.SetInitializerExpression(self._ProcessExpression(
                decl.GetInitializerExpression(), scope))
        scope.Register(decl.GetName(), decl)

    def v_Pipeline(self, pipeline, ctx):
        scope = Scope(ctx[-1])
        ctx.append(scope)
        for parameter in pipeline.GetParameters():
            parameter.ResolveType(self.__ResolveType(
                parameter.GetType(), parameter.GetLocation()))
            scope.Register(parameter.GetName(), parameter)

        self.v_Visit(pipeline.GetBody(), ctx)
        ctx.pop()

    def v_Module(self, module: ast.Module, ctx: List[Scope]):
        # Types first, constants next, as pipelines can refer to both
        for programType in module.GetTypes():
            with Errors.CompileExceptionToErrorHandler(self.errorHandler,
                                                       self.__onError):
                self.v_Visit(programType, ctx)
        for decl in module.GetConstants():
            with Errors.CompileExceptionToErrorHandler(self.errorHandler,
                                                       self.__onError):
                self.v_Visit(decl, ctx)

        for pipeline in module.GetPipelines():
            with Errors.CompileExceptionToErrorHandler(self.errorHandler,
                                                       self.__onError):
                self.v_Visit(pipeline, ctx)


def GetPass(universe, catalog):
    from psl import Pass

    def IsValid(visitor):
        return visitor.ok

    return Pass.MakePassFromVisitor(ComputeTypeVisitor(universe, catalog),
                                    'compute-types', validator=IsValid)
