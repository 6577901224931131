from psl.Builtins import Family
from psl.Targets import Target
from psl.codegen import (CodeGenerator, ExpressionPrinter, References,
                         SourceWriter, Syntax, GetAttributeDeclarations,
                         GetStageSamplers, GetStageTextures, GetTypeSpelling,
                         GetUniformBinding, IsFlat)
from psl.stage import Stage

HLSL_SYNTAX = Syntax(
    sample='{texture}.{function}(_sampler{sampler}, {coordinates})',
    matrixMultiply='mul({}, {})',
    conversions={('float3x3', 'float4x4',): 'float4x4_to_float3x3'})

RUNTIME_SUPPORT = [
    'static float3x3 float4x4_to_float3x3(float4x4 mtx) {',
    '  return float3x3(mtx[0].xyz, mtx[1].xyz, mtx[2].xyz);',
    '}',
]


class HlslGenerator(CodeGenerator):
    '''HLSL for DirectX and for SPIR-V through dxc. Metal targets use this
    generator as well.'''
    def __init__(self, catalog, target=Target.HLSL):
        self.__catalog = catalog
        self.__target = target

    def GetTarget(self):
        return self.__target

    def __Type(self, t):
        return GetTypeSpelling(self.__catalog, t, Family.HLSL)

    def __PrintStruct(self, writer, name, record, position=False):
        writer.Print('struct {} {{'.format(name))
        writer.In()
        if position:
            writer.Print('float4 _position : SV_Position;')
        if record is not None:
            for field in record.GetFields():
                if IsFlat(field.GetType()):
                    qualifier = 'nointerpolation '
                else:
                    qualifier = ''
                writer.Print('{}{} {} : VAR{};'.format(
                    qualifier, self.__Type(field.GetType()), field.GetName(),
                    field.GetIndex()))
        writer.Out()
        writer.Print('};')

    def __PrintVertexData(self, writer, program):
        writer.Print('struct host_vert_data {')
        writer.In()
        for attribute in GetAttributeDeclarations(program):
            if self.__target == Target.VULKAN_SPIRV:
                prefix = '[[vk::location({})]] '.format(attribute.location)
            else:
                prefix = ''
            writer.Print('{}{} {} : ATTR{};'.format(
                prefix, self.__Type(attribute.type), attribute.name,
                attribute.location))
        writer.Out()
        writer.Print('};')

    def Generate(self, graph, stage):
        program = graph.GetProgram()
        references = References(attributePrefix='_vert_data.')
        writer = SourceWriter()

        for line in RUNTIME_SUPPORT:
            writer.Print(line)

        hostRecord = graph.GetHostRecord(stage)
        if not hostRecord.IsEmpty():
            writer.Print('cbuffer {} : register(b{}) {{'.format(
                hostRecord.GetName(), GetUniformBinding(graph, stage)))
            writer.In()
            for field in hostRecord.GetFields():
                writer.Print('{} {};'.format(self.__Type(field.GetType()),
                                             field.GetName()))
            writer.Out()
            writer.Print('};')

        inbound = graph.GetInboundRecord(stage)
        if inbound is not None and inbound.IsEmpty():
            inbound = None
        if inbound is not None:
            # Same layout as the producer, so the signatures link
            self.__PrintStruct(writer, inbound.GetName(), inbound,
                               position=True)

        outbound = graph.GetOutboundRecord(stage)
        if outbound is not None:
            outputType = outbound.GetName()
            outputName = outbound.GetProducerName()
            self.__PrintStruct(writer, outputType, outbound, position=True)
        elif stage == Stage.Fragment:
            outputType = 'color_targets_out'
            outputName = '_targets_out'
        else:
            # Last stage without color targets, only the position is written
            outputType = '{}_out'.format(stage.GetName())
            outputName = '_{}_out'.format(stage.GetName())
            self.__PrintStruct(writer, outputType, None, position=True)

        if stage == Stage.Vertex:
            self.__PrintVertexData(writer, program)

        for binding, texture in GetStageTextures(program, stage):
            writer.Print('{} {} : register(t{});'.format(
                self.__Type(texture.type), texture.name, binding))
            references.SetParameter(texture.parameter, texture.name)

        for binding, _ in GetStageSamplers(program, stage):
            writer.Print('SamplerState _sampler{0} : register(s{0});'.format(
                binding))

        if stage == Stage.Fragment:
            writer.Print('struct color_targets_out {')
            writer.In()
            for colorTarget in program.GetColorTargets():
                writer.Print('float4 {} : SV_Target{};'.format(
                    colorTarget.name, colorTarget.index))
                references.SetParameter(
                    colorTarget.parameter,
                    '_targets_out.{}'.format(colorTarget.name))
            writer.Out()
            writer.Print('};')

        if stage == Stage.Vertex and program.GetPosition() is not None:
            references.SetParameter(program.GetPosition(),
                                    '{}._position'.format(outputName))

        if stage == Stage.Vertex:
            arguments = 'in host_vert_data _vert_data'
        elif inbound is not None:
            arguments = 'in {} {}'.format(inbound.GetName(),
                                          inbound.GetConsumerName())
        else:
            arguments = ''

        printer = ExpressionPrinter(self.__catalog, Family.HLSL, HLSL_SYNTAX,
                                    references)
        writer.Print('{} main({}) {{'.format(outputType, arguments))
        writer.In()
        writer.Print('{} {};'.format(outputType, outputName))
        for statement in graph.GetStatements(stage):
            writer.Print(printer.Format(statement))
        writer.Print('return {};'.format(outputName))
        writer.Out()
        writer.Print('}')

        return writer.GetSource()
