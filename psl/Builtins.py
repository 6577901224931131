'''The catalog of builtin types, functions and methods.

Each builtin gets a stable integer id, assigned in table order when the
catalog is built from a ``Universe``. Ids start at 1, so a failed lookup
(``None``) is never confused with a valid id.'''
import collections
from enum import Enum

from psl import Errors, types
from psl.Universe import TEXTURE_KINDS, GetSwizzleMasks


class Family(Enum):
    '''Name spelling families. Targets pick one of these columns.'''
    GLSL = 0
    HLSL = 1


BuiltinType = collections.namedtuple(
    'BuiltinType', ['id', 'name', 'declaration', 'spellings'])
BuiltinFunction = collections.namedtuple(
    'BuiltinFunction',
    ['id', 'name', 'declaration', 'spellings', 'interpolationDistributes'])
BuiltinMethod = collections.namedtuple(
    'BuiltinMethod',
    ['id', 'name', 'declaration', 'spellings', 'isSwizzle', 'isSample'])


def _TypeTable():
    table = [
        ('float', 'float', 'float',),
        ('double', 'double', 'double',),
        ('int', 'int', 'int',),
        ('uint', 'uint', 'uint',),
        ('bool', 'bool', 'bool',),
    ]

    glslPrefixes = {'float': 'vec', 'double': 'dvec', 'int': 'ivec',
                    'uint': 'uvec', 'bool': 'bvec'}
    for scalar in ('float', 'double', 'int', 'uint', 'bool',):
        for count in range(2, 5):
            name = '{}{}'.format(scalar, count)
            table.append((name, '{}{}'.format(glslPrefixes[scalar], count),
                          name,))

    for size in range(2, 5):
        name = 'float{0}x{0}'.format(size)
        table.append((name, 'mat{}'.format(size), name,))

    glslTextures = {
        'texture1d': 'sampler1D',
        'texture1d_array': 'sampler1DArray',
        'texture2d': 'sampler2D',
        'texture2d_array': 'sampler2DArray',
        'texture3d': 'sampler3D',
        'texturecube': 'samplerCube',
        'texturecube_array': 'samplerCubeArray',
    }
    hlslTextures = {
        'texture1d': 'Texture1D',
        'texture1d_array': 'Texture1DArray',
        'texture2d': 'Texture2D',
        'texture2d_array': 'Texture2DArray',
        'texture3d': 'Texture3D',
        'texturecube': 'TextureCube',
        'texturecube_array': 'TextureCubeArray',
    }
    glslComponentPrefix = {'float': '', 'int': 'i', 'uint': 'u'}
    for kind, _ in TEXTURE_KINDS:
        for component in ('float', 'int', 'uint',):
            table.append((
                '{}<{}>'.format(kind, component),
                glslComponentPrefix[component] + glslTextures[kind],
                '{}<{}4>'.format(hlslTextures[kind], component),
            ))

    return table


BUILTIN_TYPES = _TypeTable()

# name, GLSL, HLSL, distributes over interpolation
BUILTIN_FUNCTIONS = [
    ('abs', 'abs', 'abs', False,),
    ('ceil', 'ceil', 'ceil', False,),
    ('clamp', 'clamp', 'clamp', False,),
    ('cos', 'cos', 'cos', False,),
    ('cross', 'cross', 'cross', True,),
    ('distance', 'distance', 'distance', False,),
    ('dot', 'dot', 'dot', True,),
    ('exp', 'exp', 'exp', False,),
    ('floor', 'floor', 'floor', False,),
    ('fract', 'fract', 'frac', False,),
    ('length', 'length', 'length', False,),
    ('log', 'log', 'log', False,),
    ('max', 'max', 'max', False,),
    ('min', 'min', 'min', False,),
    ('mix', 'mix', 'lerp', False,),
    ('normalize', 'normalize', 'normalize', False,),
    ('pow', 'pow', 'pow', False,),
    ('reflect', 'reflect', 'reflect', False,),
    ('rsqrt', 'inversesqrt', 'rsqrt', False,),
    ('sin', 'sin', 'sin', False,),
    ('smoothstep', 'smoothstep', 'smoothstep', False,),
    ('sqrt', 'sqrt', 'sqrt', False,),
    ('step', 'step', 'step', False,),
    ('tan', 'tan', 'tan', False,),
    ('transpose', 'transpose', 'transpose', True,),
]


def _MethodTable():
    # receiver, name, GLSL, HLSL, swizzle, sample
    table = [(kind, 'sample', 'texture', 'Sample', False, True,)
             for kind, _ in TEXTURE_KINDS]
    for mask in GetSwizzleMasks():
        table.append(('vector', mask, mask, mask, True, False,))
    return table


BUILTIN_METHODS = _MethodTable()


class BuiltinCatalog:
    '''Read-only registry of builtins. Populated once from a universe;
    raises ``CatalogException`` if any builtin is not declared there.'''
    def __init__(self, universe):
        missing = []

        self.__types = [None]
        self.__functions = [None]
        self.__methods = [None]
        self.__typeIds = {}
        self.__functionIds = {}
        self.__methodIds = {}

        for name, glsl, hlsl in BUILTIN_TYPES:
            declaration = universe.GetType(name)
            if declaration is None:
                missing.append(name)
                continue
            entry = BuiltinType(len(self.__types), name, declaration,
                                (glsl, hlsl,))
            self.__types.append(entry)
            self.__typeIds[id(declaration)] = entry.id

        for name, glsl, hlsl, distributes in BUILTIN_FUNCTIONS:
            declaration = universe.GetFunction(name)
            if declaration is None:
                missing.append(name)
                continue
            entry = BuiltinFunction(len(self.__functions), name, declaration,
                                    (glsl, hlsl,), distributes)
            self.__functions.append(entry)
            self.__functionIds[id(declaration)] = entry.id

        for receiver, name, glsl, hlsl, isSwizzle, isSample \
                in BUILTIN_METHODS:
            declaration = universe.GetMethod(receiver, name)
            if declaration is None:
                missing.append('{}::{}'.format(receiver, name))
                continue
            entry = BuiltinMethod(len(self.__methods), name, declaration,
                                  (glsl, hlsl,), isSwizzle, isSample)
            self.__methods.append(entry)
            self.__methodIds[id(declaration)] = entry.id

        if missing:
            raise Errors.CatalogException(missing)

    def IdentifyType(self, declaration):
        return self.__typeIds.get(id(declaration))

    def IdentifyFunction(self, declaration):
        return self.__functionIds.get(id(declaration))

    def IdentifyMethod(self, declaration):
        return self.__methodIds.get(id(declaration))

    def GetType(self, typeId) -> BuiltinType:
        return self.__types[typeId]

    def GetFunction(self, functionId) -> BuiltinFunction:
        return self.__functions[functionId]

    def GetMethod(self, methodId) -> BuiltinMethod:
        return self.__methods[methodId]

    def GetTypeSpelling(self, typeId, family: Family) -> str:
        return self.__types[typeId].spellings[family.value]

    def GetFunctionSpelling(self, functionId, family: Family) -> str:
        return self.__functions[functionId].spellings[family.value]

    def GetMethodSpelling(self, methodId, family: Family) -> str:
        return self.__methods[methodId].spellings[family.value]

    def IsVectorType(self, typeId) -> bool:
        return isinstance(self.__types[typeId].declaration, types.VectorType)

    def IsMatrixType(self, typeId) -> bool:
        return isinstance(self.__types[typeId].declaration, types.MatrixType)

    def IsTextureType(self, typeId) -> bool:
        return isinstance(self.__types[typeId].declaration, types.TextureType)

    def IsSwizzleMethod(self, methodId) -> bool:
        return self.__methods[methodId].isSwizzle

    def IsSampleMethod(self, methodId) -> bool:
        return self.__methods[methodId].isSample

    def IsInterpolationDistributed(self, functionId) -> bool:
        return self.__functions[functionId].interpolationDistributes
