'''Splits a pipeline body into per-stage statement lists.

Starting from the stage outputs (position, color targets), every value is
traced backwards to find the earliest stage it can be computed in. Values
needed in a later stage are carried there through synthesized interface
records, one per pair of consecutive active stages, plus one record per
stage for values coming from the host.

The input tree is never modified. Every traced definition produces a new
declaration (a definition of ``x`` becomes ``T x = ...``, later definitions
of the same variable get fresh names), and promoted expressions are
rebuilt.'''
import collections

from psl import ast, op, types, Errors, Visitor
from psl.Program import (GetParameterStage, IsOutputParameter,
                         IsTextureParameter)
from psl.Universe import FILTER, WRAP
from psl.stage import Stage


class InterfaceField:
    def __init__(self, name, index, expression):
        self.__name = name
        self.__index = index
        self.__expression = expression

    def GetName(self):
        return self.__name

    def GetIndex(self):
        return self.__index

    def GetType(self):
        return self.__expression.GetType()

    def GetBuiltinTypeId(self):
        return self.__expression.GetBuiltinTypeId()

    def GetExpression(self):
        '''The value stored in this field, as computed by the producer.'''
        return self.__expression

    def __repr__(self):
        return 'InterfaceField ({}, {})'.format(
            repr(self.__name), self.__expression)


class InterfaceRecord:
    '''The data passed from one stage to the next one. Fields are
    deduplicated by the structure of the value they carry.'''
    def __init__(self, fromStage: Stage, toStage: Stage):
        self.__from = fromStage
        self.__to = toStage
        self.__fields = []
        self.__keys = {}
        self.__finalized = False

    def GetFromStage(self) -> Stage:
        return self.__from

    def GetToStage(self) -> Stage:
        return self.__to

    def GetName(self):
        return '{}_to_{}'.format(self.__from.GetName(), self.__to.GetName())

    def GetProducerName(self):
        return '_to_{}'.format(self.__to.GetName())

    def GetConsumerName(self):
        return '_from_{}'.format(self.__from.GetName())

    def GetFields(self):
        return self.__fields

    def IsEmpty(self):
        return not self.__fields

    def FindField(self, expression):
        return self.__keys.get(expression.GetKey())

    def AddField(self, expression):
        '''Return ``(field, isNew)`` for the field carrying
        ``expression``.'''
        field = self.FindField(expression)
        if field is not None:
            return field, False

        if self.__finalized:
            Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
                'record {} is already finalized'.format(self.GetName()))

        index = len(self.__fields)
        name = '_{}{}{}'.format(self.__from.GetPrefix(),
                                self.__to.GetPrefix(), index)
        field = InterfaceField(name, index, expression)
        self.__fields.append(field)
        self.__keys[expression.GetKey()] = field
        return field, True

    def Finalize(self):
        self.__finalized = True

    def IsFinalized(self):
        return self.__finalized

    def __str__(self):
        return 'struct {} ({} field(s))'.format(self.GetName(),
                                                len(self.__fields))


class StageStatementList:
    '''Statements of one stage, in emission order. Declarations are
    reference counted: adding the same declaration again only increments its
    count, and releasing the last reference removes the declaration.'''
    def __init__(self):
        self.__entries = []

    def Add(self, statement):
        self.__entries.append([statement, None, 1])

    def AddDeclaration(self, declaration):
        entry = self.__Find(declaration)
        if entry is None:
            self.__entries.append([ast.DeclarationStatement(declaration),
                                   declaration, 1])
        else:
            entry[2] += 1

    def Release(self, declaration):
        entry = self.__Find(declaration)
        if entry is None:
            Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
                'declaration {} is not part of the stage'.format(
                    declaration.GetName()))
        entry[2] -= 1
        if entry[2] == 0:
            self.__entries.remove(entry)

    def GetReferenceCount(self, declaration):
        entry = self.__Find(declaration)
        return 0 if entry is None else entry[2]

    def __Find(self, declaration):
        for entry in self.__entries:
            if entry[1] is declaration:
                return entry
        return None

    def GetStatements(self):
        return [entry[0] for entry in self.__entries]

    def __len__(self):
        return len(self.__entries)


HostAssignment = collections.namedtuple(
    'HostAssignment', ['stage', 'field', 'expression'])
PushAction = collections.namedtuple(
    'PushAction', ['stage', 'record', 'field'])


class _StopReached(Exception):
    pass


def _IsReferenceTo(expr, symbol):
    if isinstance(expr, ast.VariableExpression):
        return expr.GetDeclaration() is symbol
    if isinstance(expr, ast.ParameterExpression):
        return expr.GetParameter() is symbol
    return False


class LastDefinitionFinder(Visitor.Visitor):
    '''Finds the last definition of a variable or output parameter.

    The body is walked in order until ``stop`` is reached. A definition is a
    declaration with an initializer, or an assignment to the whole symbol.
    If and compound statements are descended into; loops and jumps are
    rejected.'''
    def Find(self, symbol, body, stop=None):
        '''Return ``(definition, statement, guards)``, where ``definition``
        is a ``VariableDeclaration`` or an ``AssignmentExpression`` and
        ``statement`` the statement holding it. ``guards`` lists the
        ``(ifStatement, inTruePath)`` branches the definition is nested in,
        outermost first, leaving out the branches ``stop`` is in as well.
        Definitions in a true path are not visible from its else path.
        Definition and statement are ``None`` if the symbol is not defined
        before ``stop``.'''
        self.__symbol = symbol
        self.__stop = stop
        self.__found = (None, None, (),)
        self.__branches = []

        try:
            self.v_Visit(body)
        except _StopReached:
            pass

        definition, statement, guards = self.__found
        # Branches enclosing both the definition and ``stop`` are taken
        guards = tuple([g for g in guards if not any(
            [g[0] is b[0] and g[1] == b[1] for b in self.__branches])])
        return definition, statement, guards

    def __Enter(self, statement):
        if statement is self.__stop:
            raise _StopReached()

    def __Found(self, definition, statement):
        self.__found = (definition, statement, tuple(self.__branches),)

    def __Search(self, expr, statement):
        if expr is None:
            return

        if isinstance(expr, ast.AssignmentExpression):
            self.__Search(expr.GetRight(), statement)

            target = expr.GetLeft()
            if _IsReferenceTo(target, self.__symbol):
                self.__Found(expr, statement)
                return

            root = target
            while isinstance(root, ast.MemberAccessExpression):
                root = root.GetParent()
            if root is not target and _IsReferenceTo(root, self.__symbol):
                Errors.ERROR_UNSUPPORTED_PARTIAL_ASSIGNMENT.Raise(
                    self.__symbol.GetName(), location=expr.GetLocation())
            return

        for child in expr:
            self.__Search(child, statement)

    def v_CompoundStatement(self, stmt, ctx=None):
        self.__Enter(stmt)
        for s in stmt:
            self.v_Visit(s, ctx)

    def v_IfStatement(self, stmt, ctx=None):
        self.__Enter(stmt)
        self.__Search(stmt.GetCondition(), stmt)
        before = self.__found

        self.__branches.append((stmt, True,))
        self.v_Visit(stmt.GetTruePath(), ctx)
        if stmt.HasElsePath():
            # Stopping at the else path asks for the value at the end of
            # the true path
            self.__Enter(stmt.GetElsePath())
        self.__branches.pop()

        if stmt.HasElsePath():
            taken = self.__found
            # Definitions of the true path are not visible in the else path
            self.__found = before
            self.__branches.append((stmt, False,))
            self.v_Visit(stmt.GetElsePath(), ctx)
            self.__branches.pop()
            if self.__found is before:
                self.__found = taken

    def v_DeclarationStatement(self, stmt, ctx=None):
        self.__Enter(stmt)
        declaration = stmt.GetDeclaration()
        self.__Search(declaration.GetInitializerExpression(), stmt)
        if declaration is self.__symbol and \
                declaration.HasInitializerExpression():
            self.__Found(declaration, stmt)

    def v_ExpressionStatement(self, stmt, ctx=None):
        self.__Enter(stmt)
        self.__Search(stmt.GetExpression(), stmt)

    def v_EmptyStatement(self, stmt, ctx=None):
        self.__Enter(stmt)

    def v_FlowStatement(self, stmt, ctx=None):
        self.__Enter(stmt)
        Errors.ERROR_UNSUPPORTED_STATEMENT.Raise(
            stmt.GetKindName(), location=stmt.GetLocation())


class StagesBuilder:
    '''Owns the per-stage statement lists and interface records of one
    program, and moves values between stages.'''
    def __init__(self, program):
        self.__program = program
        self.__activeStages = program.GetActiveStages()
        self.__statements = collections.OrderedDict(
            [(stage, StageStatementList(),) for stage in self.__activeStages])
        self.__hostRecords = collections.OrderedDict()
        self.__stageRecords = collections.OrderedDict()
        self.__lifted = {}
        self.__declarations = {}
        self.__captures = []
        self.__pushActions = []
        parameterNames = [p.GetName() for p in program.GetParameters()]
        self.__names = {stage: set(parameterNames)
                        for stage in self.__activeStages}
        self.__finalized = False

    def GetProgram(self):
        return self.__program

    def GetActiveStages(self):
        return self.__activeStages

    def __AllocateName(self, base, stage):
        # The first declaration keeps its name, later ones in the same stage
        # get a numeric suffix
        names = self.__names[stage]
        name = base
        suffix = 1
        while name in names:
            name = '{}_{}'.format(base, suffix)
            suffix += 1
        names.add(name)
        return name

    def Declare(self, symbol, definition, value, stage: Stage):
        '''Return the declaration holding ``value``, the traced value of
        ``definition``, in ``stage``. Tracing the same definition for
        different target stages yields the same declaration as long as the
        value is the same. Reads of outputs get a ``_value`` suffix.'''
        self.__CheckStage(stage)
        key = (definition, stage, value.GetKey(),)
        declaration = self.__declarations.get(key)
        if declaration is None:
            if isinstance(symbol, ast.Parameter):
                base = '{}_value'.format(symbol.GetName())
            else:
                base = symbol.GetName()
            declaration = ast.VariableDeclaration(
                symbol.GetType(), self.__AllocateName(base, stage), value)
            declaration.SetLocation(definition.GetLocation())
            self.__declarations[key] = declaration
        return declaration

    def AddCapture(self, parameter):
        if not any([p is parameter for p in self.__captures]):
            self.__captures.append(parameter)

    def GetCaptures(self):
        return self.__captures

    def __CheckStage(self, stage):
        if stage not in self.__statements:
            Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
                'stage {} is not active'.format(stage.GetName()))

    def AddStageStatement(self, declaration, stage: Stage):
        '''Add a reference to ``declaration`` in ``stage``. While it is part
        of the stage, a declaration holds a reference to every variable its
        initializer reads.'''
        self.__CheckStage(stage)
        statements = self.__statements[stage]
        if statements.GetReferenceCount(declaration) == 0:
            self.Acquire(declaration.GetInitializerExpression(), stage)
        statements.AddDeclaration(declaration)

    def ReleaseStageStatement(self, declaration, stage: Stage):
        '''Drop a reference to ``declaration`` in ``stage``. Once the last
        reference is gone, the declaration is removed and releases the
        variables its initializer reads.'''
        self.__CheckStage(stage)
        statements = self.__statements[stage]
        statements.Release(declaration)
        if statements.GetReferenceCount(declaration) == 0:
            self.Release(declaration.GetInitializerExpression(), stage)

    def Acquire(self, expr, stage: Stage):
        for reference in _GetVariableReferences(expr):
            self.AddStageStatement(reference.GetDeclaration(), stage)

    def Release(self, expr, stage: Stage):
        for reference in _GetVariableReferences(expr):
            self.ReleaseStageStatement(reference.GetDeclaration(), stage)

    def AddStatement(self, statement, stage: Stage):
        self.__CheckStage(stage)
        self.__statements[stage].Add(statement)

    def GetStatementList(self, stage: Stage) -> StageStatementList:
        return self.__statements[stage]

    def GetHostRecord(self, stage: Stage):
        if stage not in self.__hostRecords:
            self.__hostRecords[stage] = InterfaceRecord(Stage.Host, stage)
        return self.__hostRecords[stage]

    def GetPredecessor(self, stage: Stage):
        index = self.__activeStages.index(stage)
        if index == 0:
            return None
        return self.__activeStages[index - 1]

    def GetSuccessor(self, stage: Stage):
        index = self.__activeStages.index(stage)
        if index + 1 == len(self.__activeStages):
            return None
        return self.__activeStages[index + 1]

    def GetStageRecord(self, stage: Stage):
        '''The record carrying values into ``stage`` from its predecessor.'''
        if stage not in self.__stageRecords:
            self.__stageRecords[stage] = InterfaceRecord(
                self.GetPredecessor(stage), stage)
        return self.__stageRecords[stage]

    def Promote(self, expr, fromStage: Stage, toStage: Stage):
        '''Make ``expr``, computed in ``fromStage``, available in
        ``toStage``. Returns the expression to use in ``toStage``; the
        reference ``expr`` held in ``fromStage`` is given up.'''
        return self.__Promote(expr, fromStage, toStage, True)

    def __Promote(self, expr, fromStage, toStage, release):
        if fromStage == toStage or fromStage == Stage.NoStage or \
                toStage == Stage.NoStage:
            return expr
        if isinstance(expr, ast.LiteralExpression):
            return expr
        if fromStage > toStage:
            Errors.ERROR_VALUE_UNAVAILABLE_AT_STAGE.Raise(
                fromStage.GetName(), toStage.GetName(),
                location=expr.GetLocation())

        if isinstance(expr, ast.ConstructExpression):
            # Conversions are cheap to recompute, so move the construct and
            # carry only its arguments
            return expr.WithChildren(
                [self.__Promote(c, fromStage, toStage, release)
                 for c in expr])

        if isinstance(expr, ast.VariableExpression):
            return self.__Lift(expr, fromStage, toStage, release)

        return self.__Transport(expr, fromStage, toStage, release)

    def __Lift(self, expr, fromStage, toStage, release):
        declaration = expr.GetDeclaration()
        key = (declaration, toStage,)
        lifted = self.__lifted.get(key)
        if lifted is None:
            # The original initializer keeps its own references
            init = self.__Promote(declaration.GetInitializerExpression(),
                                  fromStage, toStage, False)
            lifted = ast.VariableDeclaration(
                declaration.GetType(),
                self.__AllocateName(declaration.GetName(), toStage), init)
            lifted.SetLocation(declaration.GetLocation())
            self.__lifted[key] = lifted
            self.AddStageStatement(lifted, toStage)
            self.Release(init, toStage)
        else:
            self.AddStageStatement(lifted, toStage)

        if release:
            self.ReleaseStageStatement(declaration, fromStage)

        return _Typed(ast.VariableExpression(lifted), expr)

    def __Transport(self, expr, fromStage, toStage, release):
        if not types.IsFieldCompatible(expr.GetType()):
            Errors.ERROR_UNSUPPORTED_INTERFACE_TYPE.Raise(
                expr, expr.GetType(), location=expr.GetLocation())

        if fromStage == Stage.Host:
            # Uniform data is bound to every consuming stage directly
            record = self.GetHostRecord(toStage)
            field, isNew = record.AddField(expr)
            if isNew:
                self.__pushActions.append(PushAction(toStage, record, field))
            return _Typed(ast.InterfaceFieldExpression(record, field, False),
                          expr)

        # The producer assignment of the first hop holds the references of
        # ``expr`` in ``fromStage``
        value = expr
        previous = fromStage
        for stage in self.__activeStages:
            if stage <= fromStage or stage > toStage:
                continue

            record = self.GetStageRecord(stage)
            field, isNew = record.AddField(expr)
            if isNew:
                producer = _Typed(
                    ast.InterfaceFieldExpression(record, field, True), expr)
                assignment = _Typed(ast.AssignmentExpression(producer, value),
                                    expr)
                self.AddStatement(ast.ExpressionStatement(assignment),
                                  previous)
                if value is expr and not release:
                    self.Acquire(expr, fromStage)
            elif value is expr and release:
                self.Release(expr, fromStage)
            value = _Typed(ast.InterfaceFieldExpression(record, field, False),
                           expr)
            previous = stage

        return value

    def Finalize(self):
        '''Freeze all records and return the resulting ``StageGraph``.'''
        if self.__finalized:
            Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
                'stage graph is already finalized')
        self.__finalized = True

        # Consecutive stages always get a record, even an empty one, so
        # they can be linked
        for stage in self.__activeStages[1:]:
            self.GetStageRecord(stage)

        for record in self.__hostRecords.values():
            record.Finalize()
        for record in self.__stageRecords.values():
            record.Finalize()

        hostAssignments = []
        for stage in self.__activeStages:
            record = self.__hostRecords.get(stage)
            if record is None:
                continue
            for field in record.GetFields():
                hostAssignments.append(HostAssignment(
                    stage, field, field.GetExpression()))

        return StageGraph(self, hostAssignments, self.__pushActions)


class StageGraph:
    '''The result of splitting a program: statements and records per active
    stage, plus the host side statements.'''
    def __init__(self, builder, hostAssignments, pushActions):
        self.__builder = builder
        self.__hostAssignments = hostAssignments
        self.__pushActions = pushActions

    def GetProgram(self):
        return self.__builder.GetProgram()

    def GetActiveStages(self):
        return self.__builder.GetActiveStages()

    def GetStatements(self, stage: Stage):
        return self.__builder.GetStatementList(stage).GetStatements()

    def GetHostRecord(self, stage: Stage):
        '''Uniform record of ``stage``. Never ``None`` for an active stage;
        the record may be empty.'''
        return self.__builder.GetHostRecord(stage)

    def GetInboundRecord(self, stage: Stage):
        if self.__builder.GetPredecessor(stage) is None:
            return None
        return self.__builder.GetStageRecord(stage)

    def GetOutboundRecord(self, stage: Stage):
        successor = self.__builder.GetSuccessor(stage)
        if successor is None:
            return None
        return self.__builder.GetStageRecord(successor)

    def GetHostAssignments(self):
        return self.__hostAssignments

    def GetPushActions(self):
        return self.__pushActions

    def GetCaptures(self):
        '''Uniform parameters read by any stage.'''
        return self.__builder.GetCaptures()


def _Typed(expr, like):
    expr.SetType(like.GetType())
    expr.SetBuiltinTypeId(like.GetBuiltinTypeId())
    expr.SetLocation(like.GetLocation())
    return expr


def _GetVariableReferences(expr):
    if expr is None:
        return []
    if isinstance(expr, ast.VariableExpression):
        return [expr]
    result = []
    for child in expr:
        result.extend(_GetVariableReferences(child))
    return result


class ValueTracer(Visitor.Visitor):
    '''Computes the stage of expressions for one target stage.

    ``Trace`` returns the rewritten expression and the stage it is computed
    in. Literals have no stage and can be used anywhere. A value computed in
    an earlier GPU stage than the target is interpolated; see
    ``op.GetInterpolationPolicy`` for which operations may combine
    interpolated values without moving to the target stage.'''
    def __init__(self, builder: StagesBuilder, program, catalog,
                 target: Stage):
        super().__init__()
        self.__builder = builder
        self.__program = program
        self.__catalog = catalog
        self.__target = target
        self.__finder = LastDefinitionFinder()
        self.__definitions = {}

    def GetTarget(self) -> Stage:
        return self.__target

    def __IsInterpolated(self, stage):
        return stage != Stage.Host and stage != Stage.NoStage and \
            stage < self.__target

    def Trace(self, expr, stop=None):
        '''Trace ``expr``, which appears in the statement ``stop``.'''
        exprType = expr.GetType()
        if exprType is None:
            Errors.ERROR_INTERNAL_COMPILER_ERROR.Raise(
                'untyped expression {}'.format(expr),
                location=expr.GetLocation())
        if expr.GetBuiltinTypeId() is None and \
                not isinstance(expr, ast.ConstructExpression) and \
                not isinstance(exprType, types.EnumType):
            Errors.ERROR_UNSUPPORTED_VALUE_REFERENCE.Raise(
                expr, location=expr.GetLocation())

        result, stage = self.v_Generic(expr, stop)

        if stage > self.__target:
            Errors.ERROR_VALUE_UNAVAILABLE_AT_STAGE.Raise(
                stage.GetName(), self.__target.GetName(),
                location=expr.GetLocation())
        return result, stage

    def __Combine(self, expr, results, policy):
        stages = [stage for _, stage in results]
        stage = max(stages)

        interpolated = [self.__IsInterpolated(s) for s in stages]
        if any(interpolated):
            if policy == op.Interpolation.ForcesTargetStage:
                stage = self.__target
            elif policy == op.Interpolation.DistributesUnlessDivisor:
                if interpolated[1]:
                    stage = self.__target

        children = [self.__builder.Promote(e, s, stage) for e, s in results]
        return expr.WithChildren(children), stage

    def v_LiteralExpression(self, expr, stop):
        return expr, Stage.NoStage

    def v_ConstantExpression(self, expr, stop):
        return self.Trace(expr.GetDeclaration().GetInitializerExpression(),
                          stop)

    def v_ParameterExpression(self, expr, stop):
        parameter = expr.GetParameter()

        if IsOutputParameter(parameter):
            return self.__TraceSymbol(parameter, expr, stop)
        if IsTextureParameter(parameter) or \
                isinstance(parameter.GetType(), types.StructType):
            Errors.ERROR_UNSUPPORTED_VALUE_REFERENCE.Raise(
                parameter.GetName(), location=expr.GetLocation())

        stage = GetParameterStage(parameter)
        if stage == Stage.Host:
            self.__builder.AddCapture(parameter)
        return expr, stage

    def v_VariableExpression(self, expr, stop):
        return self.__TraceSymbol(expr.GetDeclaration(), expr, stop)

    def v_MemberAccessExpression(self, expr, stop):
        parent = expr.GetParent()
        if isinstance(parent, ast.ParameterExpression) and \
                isinstance(parent.GetType(), types.StructType):
            # Fields of uniform and vertex buffer records are the leaves
            parameter = parent.GetParameter()
            stage = GetParameterStage(parameter)
            if stage == Stage.Host:
                self.__builder.AddCapture(parameter)
            return expr, stage

        return self.__Combine(expr, [self.Trace(parent, stop)],
                              op.Interpolation.Distributes)

    def v_ConstructExpression(self, expr, stop):
        if expr.GetBuiltinTypeId() is None:
            Errors.ERROR_UNSUPPORTED_CONSTRUCT.Raise(
                expr.GetType(), location=expr.GetLocation())
        return self.__Combine(expr, [self.Trace(c, stop) for c in expr],
                              op.Interpolation.Distributes)

    def v_UnaryExpression(self, expr, stop):
        return self.__Combine(
            expr, [self.Trace(expr.GetExpression(), stop)],
            op.GetInterpolationPolicy(expr.GetOperation()))

    def v_BinaryExpression(self, expr, stop):
        return self.__Combine(
            expr, [self.Trace(c, stop) for c in expr],
            op.GetInterpolationPolicy(expr.GetOperation()))

    def v_AssignmentExpression(self, expr, stop):
        # Assignments nested in values only contribute their value
        if expr.GetOperation() != op.Operation.ASSIGN:
            Errors.ERROR_UNSUPPORTED_STATEMENT.Raise(
                'compound assignment', location=expr.GetLocation())
        return self.Trace(expr.GetRight(), stop)

    def v_ConditionalExpression(self, expr, stop):
        return self.__CombineConditional(expr,
                                         [self.Trace(c, stop) for c in expr])

    def __CombineConditional(self, expr, results):
        # Selecting between interpolated values is fine, an interpolated
        # condition is not
        if self.__IsInterpolated(results[0][1]):
            policy = op.Interpolation.ForcesTargetStage
        else:
            policy = op.Interpolation.Distributes
        return self.__Combine(expr, results, policy)

    def v_CallExpression(self, expr, stop):
        functionId = expr.builtinFunctionId
        if functionId is None:
            Errors.ERROR_UNSUPPORTED_FUNCTION_CALL.Raise(
                expr.GetName(), location=expr.GetLocation())

        if self.__catalog.IsInterpolationDistributed(functionId):
            policy = op.Interpolation.Distributes
        else:
            policy = op.Interpolation.ForcesTargetStage
        return self.__Combine(expr, [self.Trace(c, stop) for c in expr],
                              policy)

    def v_MethodCallExpression(self, expr, stop):
        methodId = expr.builtinMethodId
        if methodId is None:
            Errors.ERROR_UNSUPPORTED_METHOD_CALL.Raise(
                expr.GetName(), location=expr.GetLocation())

        if self.__catalog.IsSampleMethod(methodId):
            return self.__TraceSample(expr, stop)

        if self.__catalog.IsSwizzleMethod(methodId):
            policy = op.Interpolation.Distributes
        else:
            policy = op.Interpolation.ForcesTargetStage
        return self.__Combine(expr, [self.Trace(c, stop) for c in expr],
                              policy)

    def v_Expression(self, expr, stop):
        Errors.ERROR_UNSUPPORTED_VALUE_REFERENCE.Raise(
            expr, location=expr.GetLocation())

    def __TraceSample(self, expr, stop):
        receiver = expr.GetReceiver()
        if not isinstance(receiver, ast.ParameterExpression) or \
                not IsTextureParameter(receiver.GetParameter()):
            Errors.ERROR_BAD_SAMPLE_RECEIVER.Raise(
                location=expr.GetLocation())

        stage = GetParameterStage(receiver.GetParameter())
        coordinates, sampler = expr.GetArguments()

        coordinates, coordinateStage = self.Trace(coordinates, stop)
        if coordinateStage > stage:
            Errors.ERROR_VALUE_UNAVAILABLE_AT_STAGE.Raise(
                coordinateStage.GetName(), stage.GetName(),
                location=expr.GetLocation())
        coordinates = self.__builder.Promote(coordinates, coordinateStage,
                                             stage)

        filterMode, wrapMode = self.__EvaluateSampler(sampler)
        index = self.__program.RegisterSampler(filterMode, wrapMode, stage)

        return expr.WithChildren([receiver, coordinates]).WithSampler(index), \
            stage

    def __EvaluateSampler(self, expr):
        '''Reduce a sampler argument to ``(filter, wrap)``.'''
        location = expr.GetLocation()
        while isinstance(expr, ast.ConstantExpression):
            expr = expr.GetDeclaration().GetInitializerExpression()

        if not isinstance(expr, ast.ConstructExpression):
            Errors.ERROR_NON_CONSTANT_SAMPLER.Raise(location=location)

        samplerType = expr.GetType()
        if not isinstance(samplerType, types.StructType) or \
                samplerType.GetName() != 'sampler':
            Errors.ERROR_MALFORMED_SAMPLER.Raise(
                'expected a sampler, got {}'.format(samplerType),
                location=location)

        arguments = expr.GetArguments()
        if len(arguments) != 2:
            Errors.ERROR_MALFORMED_SAMPLER.Raise(
                'expected 2 arguments, got {}'.format(len(arguments)),
                location=location)

        values = []
        for argument, expectedType in zip(arguments, (FILTER, WRAP,)):
            while isinstance(argument, ast.ConstantExpression):
                argument = argument.GetDeclaration().GetInitializerExpression()
            if not isinstance(argument, ast.LiteralExpression):
                Errors.ERROR_NON_CONSTANT_SAMPLER.Raise(location=location)
            if argument.GetType() is not expectedType:
                Errors.ERROR_MALFORMED_SAMPLER.Raise(
                    '{} is not a {} mode'.format(argument,
                                                 expectedType.GetName()),
                    location=location)
            values.append(argument.GetValue())

        return values[0], values[1]

    def __TraceSymbol(self, symbol, expr, stop):
        body = self.__program.GetBody()
        definition, statement, guards = self.__finder.Find(symbol, body,
                                                           stop)
        if definition is None:
            Errors.ERROR_UNDEFINED_VARIABLE.Raise(
                symbol.GetName(), location=expr.GetLocation())

        key = (definition, guards,)
        cached = self.__definitions.get(key)
        if cached is not None:
            value, stage = cached
            if isinstance(value, ast.VariableDeclaration):
                self.__builder.AddStageStatement(value, stage)
                return _Typed(ast.VariableExpression(value), expr), stage
            return value, stage

        value, stage = self.__TraceDefinition(symbol, expr, definition,
                                              statement, guards)
        if not stage.IsGpuStage():
            # Host and constant values are used inline, so the host side
            # never needs local variables
            self.__definitions[key] = (value, stage,)
            return value, stage

        declaration = self.__builder.Declare(symbol, definition, value, stage)
        self.__builder.AddStageStatement(declaration, stage)
        # From here on the declaration holds the references of its value
        self.__builder.Release(value, stage)
        self.__definitions[key] = (declaration, stage,)
        return _Typed(ast.VariableExpression(declaration), expr), stage

    def __TraceDefinition(self, symbol, reference, definition, statement,
                          guards):
        '''Trace the value ``symbol`` has after ``definition``. For a
        definition inside if branches, the value is selected by the branch
        conditions, ``c ? defined : previous``, innermost branch first.'''
        if isinstance(definition, ast.VariableDeclaration):
            result = self.Trace(definition.GetInitializerExpression(),
                                statement)
        else:
            result = self.__TraceAssignment(symbol, definition, statement)

        for ifStatement, inTruePath in reversed(guards):
            condition = self.Trace(ifStatement.GetCondition(), ifStatement)
            if inTruePath:
                # Without the branch, the value is the one before the if
                previous = self.__TraceSymbol(symbol, reference, ifStatement)
                results = [condition, result, previous]
            else:
                previous = self.__TraceSymbol(symbol, reference,
                                              ifStatement.GetElsePath())
                results = [condition, previous, result]

            selection = _Typed(ast.ConditionalExpression(
                ifStatement.GetCondition(), reference, reference), reference)
            result = self.__CombineConditional(selection, results)

        return result

    def __TraceAssignment(self, symbol, definition, statement):
        value = self.Trace(definition.GetRight(), statement)
        operation = op.GetCompoundOperation(definition.GetOperation())
        if operation is None:
            return value

        target = definition.GetLeft()
        previous = self.__TraceSymbol(symbol, target, statement)
        combined = _Typed(ast.BinaryExpression(
            operation, target, definition.GetRight()), definition)
        return self.__Combine(combined, [previous, value],
                              op.GetInterpolationPolicy(operation))

    def TraceOutput(self, parameter):
        '''Emit the final assignment of the output ``parameter`` into the
        target stage.'''
        body = self.__program.GetBody()
        definition, statement, guards = self.__finder.Find(parameter, body)
        if definition is None:
            Errors.ERROR_UNDEFINED_VARIABLE.Raise(
                parameter.GetName(), location=parameter.GetLocation())

        target = ast.ParameterExpression(parameter)
        target.SetType(parameter.GetType())
        target.SetBuiltinTypeId(
            self.__catalog.IdentifyType(parameter.GetType()))
        target.SetLocation(definition.GetLocation())

        value, stage = self.__TraceDefinition(parameter, target, definition,
                                              statement, guards)
        if stage > self.__target:
            Errors.ERROR_VALUE_UNAVAILABLE_AT_STAGE.Raise(
                stage.GetName(), self.__target.GetName(),
                location=definition.GetLocation())
        value = self.__builder.Promote(value, stage, self.__target)

        assignment = _Typed(ast.AssignmentExpression(target, value), target)
        self.__builder.AddStatement(ast.ExpressionStatement(assignment),
                                    self.__target)


def BuildStageGraph(program, catalog) -> StageGraph:
    '''Split ``program`` into stages. Outputs are traced stage by stage, in
    pipeline order.'''
    builder = StagesBuilder(program)
    for stage in program.GetActiveStages():
        tracer = ValueTracer(builder, program, catalog, stage)
        for parameter in program.GetOutputs(stage):
            tracer.TraceOutput(parameter)
    return builder.Finalize()
