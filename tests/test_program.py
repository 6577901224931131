from psl import Errors
from psl.Program import InputRate
from psl.codegen import GetAttributeDeclarations
from psl.stage import Stage, StageMask
import pytest
import re


def _Codes(messages):
    return [re.search(r"P(\d{4}):", m).group(1) for m in messages]


class TestProgramModel:
    def testTexturedProgramTables(self, Program, texturedSource):
        program = Program(texturedSource)

        assert program.GetName() == 'Textured'
        assert program.GetActiveStages() == [Stage.Vertex, Stage.Fragment]

        binding, = program.GetVertexBindings()
        assert binding.binding == 0
        assert binding.stride == 20
        assert binding.inputRate == InputRate.PerVertex

        attributes = program.GetVertexAttributes()
        assert [(a.location, a.offset, a.format, a.name,)
                for a in attributes] == [
            (0, 0, 'RGB32_SFLOAT', 'vertices_position',),
            (1, 12, 'RG32_SFLOAT', 'vertices_uv',),
        ]

        texture, = program.GetTextures()
        assert texture.name == 'diffuse'
        assert texture.stage == Stage.Fragment

        colorTarget, = program.GetColorTargets()
        assert (colorTarget.name, colorTarget.index,) == ('outColor', 0,)
        assert program.GetPosition().GetName() == 'outPosition'

    def testPositionOnlyProgramHasVertexStage(self, Program):
        program = Program('''
        struct Vertex { float3 position; }
        pipeline P (vertex_buffer(0) Vertex v, position float4 p)
        {
            p = float4(v.position, 1.0);
        }''')

        assert program.GetActiveStages() == [Stage.Vertex]
        assert program.GetUseStages().Contains(Stage.Host)

    def testMatrixAttributesUseOneLocationPerColumn(self, Program):
        program = Program('''
        struct Instance { float4x4 model; float3x3 normal; uint id; }
        pipeline P (instance_buffer(2) Instance i, position float4 p)
        {
            p = float4(0.0, 0.0, 0.0, 1.0);
        }''')

        attributes = program.GetVertexAttributes()
        assert [a.location for a in attributes] == list(range(8))
        assert [a.format for a in attributes] == \
            ['RGBA32_SFLOAT'] * 4 + ['RGB32_SFLOAT'] * 3 + ['R32_UINT']
        assert [a.offset for a in attributes[4:]] == [64, 76, 88, 100]

        binding, = program.GetVertexBindings()
        assert binding.binding == 2
        assert binding.stride == 104
        assert binding.inputRate == InputRate.PerInstance

        declared = GetAttributeDeclarations(program)
        assert [(a.name, a.location,) for a in declared] == [
            ('i_model', 0,), ('i_normal', 4,), ('i_id', 7,)]

    def testVertexBufferSlotOutOfRange(self, Program):
        errorHandler = Errors.ErrorHandler()
        with pytest.raises(Errors.ProgramException) as e:
            Program('''
            struct Vertex { float3 position; }
            pipeline P (vertex_buffer(32) Vertex v, position float4 p)
            {
                p = float4(v.position, 1.0);
            }''', errorHandler)

        assert _Codes(e.value.messages) == ['3004']
        assert errorHandler.HasErrors()

    def testAllParameterErrorsAreReported(self, Program):
        with pytest.raises(Errors.ProgramException) as e:
            Program('''
            pipeline P (
                color_target(8) float4 a,
                color_target(0) float4 b,
                color_target(0) float4 c,
                position float3 p)
            {
            }''')

        assert _Codes(e.value.messages) == ['3009', '3010', '3001']

    def testRecordFieldsMustBeFieldCompatible(self, Program):
        with pytest.raises(Errors.ProgramException) as e:
            Program('''
            struct Vertex { float3 position; bool visible; int64 id; }
            pipeline P (vertex_buffer(0) Vertex v, position float4 p)
            {
                p = float4(v.position, 1.0);
            }''')

        assert _Codes(e.value.messages) == ['3012']

    def testWideIntegerField(self, Program):
        with pytest.raises(Errors.ProgramException) as e:
            Program('''
            struct Vertex { int64 id; }
            pipeline P (vertex_buffer(0) Vertex v, position float4 p)
            {
            }''')

        assert _Codes(e.value.messages) == ['3011']

    def testProgramWithoutOutputs(self, Program):
        with pytest.raises(Errors.ProgramException) as e:
            Program('''
            pipeline P (float4 a)
            {
            }''')

        assert _Codes(e.value.messages) == ['3017']


class TestSamplerRegistration:
    def testSamplersAreDeduplicated(self, Program, texturedSource):
        program = Program(texturedSource)

        assert program.RegisterSampler(0, 0, Stage.Vertex) == 0
        assert program.RegisterSampler(0, 0, Stage.Fragment) == 0
        assert program.RegisterSampler(1, 0, Stage.Fragment) == 1

        first, second = program.GetSamplers()
        expected = StageMask()
        expected.Add(Stage.Vertex)
        expected.Add(Stage.Fragment)
        assert first.GetStageMask() == expected
        assert second.GetStageMask().GetStages() == [Stage.Fragment]

    def testSamplerLimit(self, Program, texturedSource):
        program = Program(texturedSource)

        for i in range(32):
            assert program.RegisterSampler(i, 0, Stage.Fragment) == i
        # Known configurations are still found once the table is full
        assert program.RegisterSampler(5, 0, Stage.Vertex) == 5

        with pytest.raises(Errors.CompileException) as e:
            program.RegisterSampler(32, 0, Stage.Fragment)
        assert e.value.message == Errors.ERROR_SAMPLER_LIMIT_REACHED
