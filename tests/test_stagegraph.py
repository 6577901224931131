from psl import ast, types, Errors
from psl.StageGraph import (BuildStageGraph, LastDefinitionFinder,
                            StagesBuilder)
from psl.stage import Stage
import pytest


@pytest.fixture
def Graph(Program, catalog):
    def Build(source):
        return BuildStageGraph(Program(source), catalog)
    return Build


def _Statements(graph, stage):
    return [str(s) for s in graph.GetStatements(stage)]


class _StageList:
    '''Just enough of a program for a StagesBuilder.'''
    def __init__(self, stages):
        self.__stages = stages

    def GetActiveStages(self):
        return self.__stages

    def GetParameters(self):
        return []


def _Value(name, valueType):
    expr = ast.ParameterExpression(
        ast.Parameter(ast.ParameterRole.Uniform, valueType, name))
    expr.SetType(valueType)
    return expr


class TestLastDefinitionFinder:
    def testFindsLastDefinitionBeforeStop(self, TypedModule):
        pipeline = TypedModule('''
        pipeline P (position float4 p)
        {
            float4 a = float4(0.0, 0.0, 0.0, 1.0);
            a = float4(1.0, 1.0, 1.0, 1.0);
            p = a;
        }''').GetPipelines()[0]
        body = pipeline.GetBody()
        declaration, assignment, output = body.GetStatements()
        a = declaration.GetDeclaration()

        finder = LastDefinitionFinder()
        definition, statement, guards = finder.Find(a, body, output)
        assert statement is assignment
        assert guards == ()
        assert isinstance(definition, ast.AssignmentExpression)

        definition, statement, _ = finder.Find(a, body, assignment)
        assert definition is a
        assert statement is declaration

        assert finder.Find(a, body, declaration) == (None, None, (),)

        definition, statement, _ = finder.Find(
            pipeline.GetParameter('p'), body)
        assert statement is output

    def testDefinitionInsideIfIsGuarded(self, TypedModule):
        body = TypedModule('''
        pipeline P (position float4 p)
        {
            float4 a = float4(0.0, 0.0, 0.0, 1.0);
            if (a.x > 0.5) { a = float4(1.0, 1.0, 1.0, 1.0); }
            p = a;
        }''').GetPipelines()[0].GetBody()
        declaration, branch, output = body.GetStatements()
        inner = branch.GetTruePath().GetStatements()[0]

        definition, statement, guards = LastDefinitionFinder().Find(
            declaration.GetDeclaration(), body, output)
        assert statement is inner
        assert guards == ((branch, True,),)

    def testBranchHoldingTheReadIsNotAGuard(self, TypedModule):
        body = TypedModule('''
        pipeline P (position float4 p)
        {
            float4 a = float4(0.0, 0.0, 0.0, 1.0);
            if (a.x > 0.5) {
                a = float4(1.0, 1.0, 1.0, 1.0);
                p = a;
            } else {
                p = a;
            }
        }''').GetPipelines()[0].GetBody()
        declaration, branch = body.GetStatements()
        a = declaration.GetDeclaration()
        definition, readInTrue = branch.GetTruePath().GetStatements()
        readInElse, = branch.GetElsePath().GetStatements()

        _, statement, guards = LastDefinitionFinder().Find(a, body,
                                                           readInTrue)
        assert statement is definition
        assert guards == ()

        # The true path is not visible from the else path
        _, statement, guards = LastDefinitionFinder().Find(a, body,
                                                           readInElse)
        assert statement is declaration
        assert guards == ()

    def testStopAtElsePathSeesTheEndOfTheTruePath(self, TypedModule):
        body = TypedModule('''
        pipeline P (position float4 p)
        {
            float4 a = float4(0.0, 0.0, 0.0, 1.0);
            if (a.x > 0.5) {
                a = float4(1.0, 1.0, 1.0, 1.0);
            } else {
                a = float4(2.0, 2.0, 2.0, 1.0);
            }
            p = a;
        }''').GetPipelines()[0].GetBody()
        declaration, branch, output = body.GetStatements()
        inTrue, = branch.GetTruePath().GetStatements()
        inElse, = branch.GetElsePath().GetStatements()
        a = declaration.GetDeclaration()

        _, statement, guards = LastDefinitionFinder().Find(a, body, output)
        assert statement is inElse
        assert guards == ((branch, False,),)

        _, statement, guards = LastDefinitionFinder().Find(
            a, body, branch.GetElsePath())
        assert statement is inTrue
        assert guards == ()

    def testLoopsAreRejected(self, TypedModule):
        body = TypedModule('''
        pipeline P (position float4 p)
        {
            float a = 0.0;
            while (a < 1.0) { a = a + 1.0; }
            p = float4(a, a, a, 1.0);
        }''').GetPipelines()[0].GetBody()
        a = body.GetStatements()[0].GetDeclaration()

        with pytest.raises(Errors.CompileException) as e:
            LastDefinitionFinder().Find(a, body)
        assert e.value.message == Errors.ERROR_UNSUPPORTED_STATEMENT
        assert "'while'" in str(e.value)

    def testPartialAssignmentIsRejected(self, TypedModule):
        pipeline = TypedModule('''
        pipeline P (position float4 p)
        {
            p = float4(0.0, 0.0, 0.0, 1.0);
            p.x = 1.0;
        }''').GetPipelines()[0]

        with pytest.raises(Errors.CompileException) as e:
            LastDefinitionFinder().Find(pipeline.GetParameter('p'),
                                        pipeline.GetBody())
        assert e.value.message == \
            Errors.ERROR_UNSUPPORTED_PARTIAL_ASSIGNMENT


class TestStagesBuilder:
    def testRelayThroughIntermediateStage(self):
        builder = StagesBuilder(
            _StageList([Stage.Vertex, Stage.Geometry, Stage.Fragment]))
        value = _Value('v', types.VectorType(types.Float(), 4))

        result = builder.Promote(value, Stage.Vertex, Stage.Fragment)

        assert str(result) == '_from_geometry._gf0'
        assert [str(s) for s in
                builder.GetStatementList(Stage.Vertex).GetStatements()] == \
            ['_to_geometry._vg0 = v']
        assert [str(s) for s in
                builder.GetStatementList(Stage.Geometry).GetStatements()] == \
            ['_to_fragment._gf0 = _from_vertex._vg0']
        assert len(builder.GetStatementList(Stage.Fragment)) == 0

        # The same value reuses the existing fields
        again = builder.Promote(value, Stage.Vertex, Stage.Fragment)
        assert str(again) == str(result)
        assert len(builder.GetStatementList(Stage.Vertex)) == 1
        assert len(builder.GetStatementList(Stage.Geometry)) == 1

    def testSameStageAndLiteralsAreNotPromoted(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        value = _Value('v', types.Float())
        literal = ast.LiteralExpression(1.0, types.Float())

        assert builder.Promote(value, Stage.Vertex, Stage.Vertex) is value
        assert builder.Promote(literal, Stage.Vertex,
                               Stage.Fragment) is literal
        assert builder.GetStageRecord(Stage.Fragment).IsEmpty()

    def testHostValuesArePushedOncePerStage(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        value = _Value('scale', types.Float())

        builder.Promote(value, Stage.Host, Stage.Vertex)
        builder.Promote(value, Stage.Host, Stage.Fragment)
        builder.Promote(value, Stage.Host, Stage.Fragment)

        graph = builder.Finalize()
        assert [(p.stage, p.field.GetName(),)
                for p in graph.GetPushActions()] == [
            (Stage.Vertex, '_hv0',), (Stage.Fragment, '_hf0',)]
        assert [a.stage for a in graph.GetHostAssignments()] == \
            [Stage.Vertex, Stage.Fragment]

    def testValuesDoNotMoveBackwards(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        value = _Value('v', types.Float())

        with pytest.raises(Errors.CompileException) as e:
            builder.Promote(value, Stage.Fragment, Stage.Vertex)
        assert e.value.message == Errors.ERROR_VALUE_UNAVAILABLE_AT_STAGE

    def testBoolCannotCrossStages(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        value = _Value('flag', types.Bool())

        with pytest.raises(Errors.CompileException) as e:
            builder.Promote(value, Stage.Vertex, Stage.Fragment)
        assert e.value.message == Errors.ERROR_UNSUPPORTED_INTERFACE_TYPE

    def testFinalizeOnlyOnce(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        graph = builder.Finalize()

        assert graph.GetInboundRecord(Stage.Vertex) is None
        assert graph.GetOutboundRecord(Stage.Fragment) is None
        assert graph.GetOutboundRecord(Stage.Vertex).GetName() == \
            'vertex_to_fragment'

        with pytest.raises(Errors.CompileException):
            builder.Finalize()

    def testReleaseCountsReferences(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        statements = builder.GetStatementList(Stage.Vertex)
        declaration = ast.VariableDeclaration(
            types.Float(), 'a', ast.LiteralExpression(1.0, types.Float()))

        statements.AddDeclaration(declaration)
        statements.AddDeclaration(declaration)
        statements.Release(declaration)
        assert statements.GetReferenceCount(declaration) == 1
        statements.Release(declaration)
        assert len(statements) == 0

    def testReleaseUnknownDeclaration(self):
        builder = StagesBuilder(_StageList([Stage.Vertex, Stage.Fragment]))
        declaration = ast.VariableDeclaration(types.Float(), 'a')

        with pytest.raises(Errors.CompileException) as e:
            builder.GetStatementList(Stage.Vertex).Release(declaration)
        assert e.value.message == Errors.ERROR_INTERNAL_COMPILER_ERROR


MULTI_STAGE = '''
struct Vertex {{ float3 position; float2 uv; }}
pipeline P (
    vertex_buffer(0) Vertex vertices,
    position float4 outPosition,
    color_target(0) float4 outColor)
{{
    {}
}}
'''


class TestBuildStageGraph:
    def testTexturedPipeline(self, Graph, texturedSource):
        graph = Graph(texturedSource)
        assert graph.GetActiveStages() == [Stage.Vertex, Stage.Fragment]

        hostRecord = graph.GetHostRecord(Stage.Vertex)
        field, = hostRecord.GetFields()
        assert field.GetName() == '_hv0'
        assert str(field.GetExpression()) == 'transform'
        assert graph.GetHostRecord(Stage.Fragment).IsEmpty()

        record = graph.GetOutboundRecord(Stage.Vertex)
        assert record is graph.GetInboundRecord(Stage.Fragment)
        assert [str(f.GetExpression()) for f in record.GetFields()] == \
            ['vertices.uv']

        assert _Statements(graph, Stage.Vertex) == [
            'outPosition = (_from_host._hv0 * float4(vertices.position, 1.0))',
            '_to_fragment._vf0 = vertices.uv',
        ]
        assert _Statements(graph, Stage.Fragment) == [
            'outColor = diffuse.sample(_from_vertex._vf0)',
        ]

        push, = graph.GetPushActions()
        assert push.stage == Stage.Vertex
        assert push.field is field
        assert [p.GetName() for p in graph.GetCaptures()] == ['transform']

        sampler, = graph.GetProgram().GetSamplers()
        assert sampler.GetStageMask().GetStages() == [Stage.Fragment]

    def testProductsAreInterpolated(self, Graph):
        graph = Graph(MULTI_STAGE.format('''
            outPosition = float4(vertices.position, 1.0);
            outColor = float4(vertices.uv * 2.0, 0.0, 1.0);'''))

        record = graph.GetInboundRecord(Stage.Fragment)
        assert [str(f.GetExpression()) for f in record.GetFields()] == \
            ['vertices.uv * 2.0']
        assert _Statements(graph, Stage.Fragment) == [
            'outColor = float4(_from_vertex._vf0, 0.0, 1.0)']

    def testInterpolatedDivisorMovesDivision(self, Graph):
        graph = Graph(MULTI_STAGE.format('''
            outPosition = float4(vertices.position, 1.0);
            outColor = float4(vertices.uv / vertices.uv.x, 0.0, 1.0);'''))

        record = graph.GetInboundRecord(Stage.Fragment)
        assert [str(f.GetExpression()) for f in record.GetFields()] == \
            ['vertices.uv', 'vertices.uv.x']
        assert _Statements(graph, Stage.Fragment) == [
            'outColor = float4(_from_vertex._vf0 / _from_vertex._vf1, '
            '0.0, 1.0)']

    def testVariablesAreLiftedIntoTheConsumingStage(self, Graph):
        graph = Graph(MULTI_STAGE.format('''
            float2 scaled = vertices.uv * 2.0;
            outPosition = float4(vertices.position, 1.0);
            outColor = float4(scaled, 0.0, 1.0);'''))

        assert _Statements(graph, Stage.Vertex) == [
            'outPosition = float4(vertices.position, 1.0)',
            '_to_fragment._vf0 = (vertices.uv * 2.0)',
        ]
        assert _Statements(graph, Stage.Fragment) == [
            'float2 scaled = _from_vertex._vf0',
            'outColor = float4(scaled, 0.0, 1.0)',
        ]

    def testVariablesUsedByBothStagesStay(self, Graph):
        graph = Graph(MULTI_STAGE.format('''
            float2 scaled = vertices.uv * 2.0;
            outPosition = float4(scaled, 0.0, 1.0);
            outColor = float4(scaled, 0.0, 1.0);'''))

        assert _Statements(graph, Stage.Vertex) == [
            'float2 scaled = vertices.uv * 2.0',
            'outPosition = float4(scaled, 0.0, 1.0)',
            '_to_fragment._vf0 = (vertices.uv * 2.0)',
        ]
        assert _Statements(graph, Stage.Fragment)[0] == \
            'float2 scaled = _from_vertex._vf0'

    def testRedefinitionsGetFreshNames(self, Graph):
        graph = Graph(MULTI_STAGE.format('''
            float4 a = float4(vertices.position, 1.0);
            a = a * 2.0;
            outPosition = a;
            outColor = float4(1.0, 1.0, 1.0, 1.0);'''))

        assert _Statements(graph, Stage.Vertex) == [
            'float4 a = float4(vertices.position, 1.0)',
            'float4 a_1 = a * 2.0',
            'outPosition = a_1',
        ]

    def testSampleOfLaterStageIsUnavailable(self, Graph):
        with pytest.raises(Errors.CompileException) as e:
            Graph('''
            pipeline P (fragment_texture(0) texture2d t, position float4 p)
            {
                p = t.sample(float2(0.0, 0.0), sampler(linear, clamp));
            }''')
        assert e.value.message == Errors.ERROR_VALUE_UNAVAILABLE_AT_STAGE

    def testUnwrittenOutputIsUndefined(self, Graph):
        with pytest.raises(Errors.CompileException) as e:
            Graph(MULTI_STAGE.format('''
            outPosition = float4(vertices.position, 1.0);'''))
        assert e.value.message == Errors.ERROR_UNDEFINED_VARIABLE

    def testHostConditionSelectsTheDefinition(self, Graph):
        graph = Graph('''
        pipeline P (float u, color_target(0) float4 c)
        {
            float x = 1.0;
            if (u > 0.5) { x = 2.0; }
            c = float4(x, 0.0, 0.0, 1.0);
        }''')

        field, = graph.GetHostRecord(Stage.Fragment).GetFields()
        assert str(field.GetExpression()) == 'u > 0.5 ? 2.0 : 1.0'
        assert _Statements(graph, Stage.Fragment) == [
            'c = float4(_from_host._hf0, 0.0, 0.0, 1.0)']
        assert [p.GetName() for p in graph.GetCaptures()] == ['u']

    def testElseBranchSelectsTheOtherDefinition(self, Graph):
        graph = Graph('''
        pipeline P (float u, color_target(0) float4 c)
        {
            float x = 1.0;
            if (u > 0.5) { x = 2.0; } else { x = 3.0; }
            c = float4(x, 0.0, 0.0, 1.0);
        }''')

        field, = graph.GetHostRecord(Stage.Fragment).GetFields()
        assert str(field.GetExpression()) == 'u > 0.5 ? 2.0 : 3.0'

    def testConditionalDefinitionInGpuStage(self, Graph):
        graph = Graph(MULTI_STAGE.format('''
            float4 pos = float4(vertices.position, 1.0);
            if (vertices.uv.x > 0.5) {{ pos = float4(0.0, 0.0, 0.0, 1.0); }}
            outPosition = pos;
            outColor = float4(1.0, 1.0, 1.0, 1.0);'''))

        assert _Statements(graph, Stage.Vertex) == [
            'float4 pos = float4(vertices.position, 1.0)',
            'float4 pos_1 = vertices.uv.x > 0.5 ? '
            'float4(0.0, 0.0, 0.0, 1.0) : pos',
            'outPosition = pos_1',
        ]

    def testReadInsideTheBranchIsUnconditional(self, Graph):
        graph = Graph('''
        pipeline P (float u, color_target(0) float4 c)
        {
            float x = 1.0;
            if (u > 0.5) {
                x = 2.0;
                c = float4(x, x, x, x);
            } else {
                c = float4(x, x, x, x);
            }
        }''')

        field, = graph.GetHostRecord(Stage.Fragment).GetFields()
        # The else path reads the declaration, the true path the assignment
        assert str(field.GetExpression()) == \
            'u > 0.5 ? float4(2.0, 2.0, 2.0, 2.0) : ' \
            'float4(1.0, 1.0, 1.0, 1.0)'
