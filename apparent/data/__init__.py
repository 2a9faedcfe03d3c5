"""
Static coefficient tables: IAU 1980 and IAU 2000 nutation series and the
ELP-2000/82 lunar terms.
"""
