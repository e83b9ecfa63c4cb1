from setuptools import setup, find_packages

requirements = []
with open("requirements.txt", 'r') as req_file:
    for line in req_file.readlines():
        line = line.strip()
        if not line or line[0] == '#':
            continue
        if line[-1] == ',':
            line = line[:-1]
        requirements.append(line)

setup(
    name='eventjets',
    version='0.1.0',
    packages=find_packages(include=['eventjets', 'eventjets.*']),
    python_requires='>=3.8',
    install_requires=requirements,
    extras_require={'test': ['pytest']},
)
