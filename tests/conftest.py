import pytest

from psl import Errors
from psl.Builtins import BuiltinCatalog
from psl.Program import ProgramModel
from psl.Universe import CreateStandardUniverse
from psl.parser import PslParser
from psl.passes import ComputeTypes

TEXTURED_SOURCE = '''
struct Vertex
{
    float3 position;
    float2 uv;
}

pipeline Textured (
    float4x4 transform,
    vertex_buffer(0) Vertex vertices,
    fragment_texture(0) texture2d diffuse,
    position float4 outPosition,
    color_target(0) float4 outColor)
{
    outPosition = transform * float4(vertices.position, 1.0);
    outColor = diffuse.sample(vertices.uv, sampler(linear, repeat));
}
'''


@pytest.fixture
def texturedSource():
    return TEXTURED_SOURCE


@pytest.fixture
def universe():
    return CreateStandardUniverse()


@pytest.fixture
def catalog(universe):
    return BuiltinCatalog(universe)


@pytest.fixture
def TypedModule(universe, catalog):
    '''Parse and type a module, failing the test on front-end errors.'''
    def Parse(source):
        module = PslParser().Parse(source)
        typesPass = ComputeTypes.GetPass(universe, catalog)
        assert typesPass.Process(module)
        return module
    return Parse


@pytest.fixture
def Program(TypedModule, catalog):
    '''Build the program model of the first pipeline in a module.'''
    def Build(source, errorHandler=None):
        module = TypedModule(source)
        return ProgramModel(module.GetPipelines()[0], catalog,
                            errorHandler or Errors.ErrorHandler())
    return Build
