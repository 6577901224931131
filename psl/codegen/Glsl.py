from psl.Builtins import Family
from psl.Targets import Target
from psl.codegen import (CodeGenerator, ExpressionPrinter, References,
                         SourceWriter, Syntax, GetAttributeDeclarations,
                         GetStageTextures, GetTypeSpelling, GetUniformBinding,
                         IsFlat)
from psl.stage import Stage

GLSL_SYNTAX = Syntax(
    sample='{function}({texture}, {coordinates})',
    matrixMultiply=None,
    conversions={})


class GlslGenerator(CodeGenerator):
    '''Vulkan flavored GLSL. Resources are bound with layout qualifiers,
    textures are combined image samplers.'''
    def __init__(self, catalog):
        self.__catalog = catalog

    def GetTarget(self):
        return Target.GLSL

    def __Type(self, t):
        return GetTypeSpelling(self.__catalog, t, Family.GLSL)

    def __PrintBlock(self, writer, header, record, instance=None,
                     interpolated=False):
        writer.Print(header + ' {')
        writer.In()
        for field in record.GetFields():
            if interpolated and IsFlat(field.GetType()):
                qualifier = 'flat '
            else:
                qualifier = ''
            writer.Print('{}{} {};'.format(qualifier,
                                           self.__Type(field.GetType()),
                                           field.GetName()))
        writer.Out()
        if instance is None:
            writer.Print('};')
        else:
            writer.Print('}} {};'.format(instance))

    def Generate(self, graph, stage):
        program = graph.GetProgram()
        references = References()
        writer = SourceWriter()

        writer.Print('#version 450 core')

        hostRecord = graph.GetHostRecord(stage)
        if not hostRecord.IsEmpty():
            self.__PrintBlock(writer, 'layout(binding = {}) uniform {}'.format(
                GetUniformBinding(graph, stage), hostRecord.GetName()),
                hostRecord)

        inbound = graph.GetInboundRecord(stage)
        if inbound is not None and not inbound.IsEmpty():
            self.__PrintBlock(writer,
                              'layout(location = 0) in ' + inbound.GetName(),
                              inbound, inbound.GetConsumerName(), True)

        outbound = graph.GetOutboundRecord(stage)
        if outbound is not None and not outbound.IsEmpty():
            self.__PrintBlock(writer,
                              'layout(location = 0) out ' + outbound.GetName(),
                              outbound, outbound.GetProducerName(), True)

        if stage == Stage.Vertex:
            for attribute in GetAttributeDeclarations(program):
                writer.Print('layout(location = {}) in {} {};'.format(
                    attribute.location, self.__Type(attribute.type),
                    attribute.name))

        for binding, texture in GetStageTextures(program, stage):
            writer.Print('layout(binding = {}) uniform {} {};'.format(
                binding, self.__Type(texture.type), texture.name))
            references.SetParameter(texture.parameter, texture.name)

        if stage == Stage.Fragment:
            for colorTarget in program.GetColorTargets():
                writer.Print('layout(location = {}) out vec4 {};'.format(
                    colorTarget.index, colorTarget.name))
                references.SetParameter(colorTarget.parameter,
                                        colorTarget.name)

        if stage == Stage.Vertex and program.GetPosition() is not None:
            references.SetParameter(program.GetPosition(), 'gl_Position')

        printer = ExpressionPrinter(self.__catalog, Family.GLSL, GLSL_SYNTAX,
                                    references)
        writer.Print('void main() {')
        writer.In()
        for statement in graph.GetStatements(stage):
            writer.Print(printer.Format(statement))
        writer.Out()
        writer.Print('}')

        return writer.GetSource()
